from app.models.tenant import Tenant
from app.models.user_group import UserGroup
from app.models.user import User
from app.models.device import Device
from app.models.message import Message
from app.models.contact import Contact
from app.models.chat_group import ChatGroup
