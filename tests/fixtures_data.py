"""Conjunto de dados reutilizável para cenários de teste backend."""

ADMIN_REGISTRATION = {
    "email": "admin@example.com",
    "password": "secret123",
    "firstName": "Ana",
    "lastName": "Admin",
    "tenantName": "Acme",
}

OTHER_TENANT_REGISTRATION = {
    "email": "owner@othercorp.com",
    "password": "secret123",
    "firstName": "Otto",
    "lastName": "Owner",
    "tenantName": "Other Corp",
}

MEMBER_PASSWORD = "member123"

CONTACT_PAYLOAD = {
    "phoneNumber": "+55 (11) 99999-0000",
    "firstName": "João",
    "lastName": "Silva",
    "email": "joao@example.com",
    "company": "Padaria",
    "tags": ["vip", "sp"],
}

CHAT_GROUP_PAYLOAD = {
    "groupId": "120363025246125486@g.us",
    "name": "Clientes VIP",
    "description": "Avisos para clientes",
    "participants": ["+5511999990000", "+5511988887777"],
}

TEXT_MESSAGE = {
    "phoneNumber": "+5511999990000",
    "messageType": "text",
    "content": "Olá! Seu pedido saiu para entrega.",
}

ACCESS_DENIED_SEND = {
    "expected_status_code": 403,
    "expected_detail": "Insufficient permissions. Required: canSendMessages",
}
