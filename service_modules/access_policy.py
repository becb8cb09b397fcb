"""
Roles and the capability matrix consulted by the subscription and chat services.

Each entry maps (actor role, action) or (sender role, recipient role) to a
predicate over the actor and the target. A missing entry means "denied".
"""
from enum import Enum

from errors import AuthorizationError


class Role(str, Enum):
    ADMIN = "admin"
    EMPLOYEE = "employee"
    USER = "user"

    @classmethod
    def parse(cls, value) -> "Role":
        # Profiles without a usable role are treated as plain users
        try:
            return cls(value)
        except ValueError:
            return cls.USER


ROLE_RANK = {Role.ADMIN: 0, Role.EMPLOYEE: 1, Role.USER: 2}
CHAT_TOKEN_PREFIX = {Role.ADMIN: "admin", Role.EMPLOYEE: "emp", Role.USER: "user"}


# --- PREDICATES ---

def always(actor, target) -> bool:
    return True


def owns_subscription(actor, employee_id) -> bool:
    return actor.id == employee_id


def is_assigned_user(actor, target) -> bool:
    return getattr(target, "assigned_employee_id", None) == actor.id


# --- MATRIX ---

SUBSCRIPTION_ACTIONS = {
    (Role.ADMIN, "view"): always,
    (Role.ADMIN, "renew"): always,
    (Role.EMPLOYEE, "view"): owns_subscription,
    (Role.EMPLOYEE, "renew"): owns_subscription,
}

SUBSCRIPTION_DENIALS = {
    "view": "You can only view your own subscription",
    "renew": "You can only renew your own subscription",
}

# (sender role, recipient role) -> predicate(sender, recipient)
CHAT_CONTACTS = {
    (Role.ADMIN, Role.EMPLOYEE): always,
    (Role.ADMIN, Role.USER): always,
    (Role.EMPLOYEE, Role.ADMIN): always,
    (Role.EMPLOYEE, Role.USER): is_assigned_user,
}

CHAT_DENIALS = {
    Role.ADMIN: "Admin can only chat with employees and users",
    Role.EMPLOYEE: "Employees can only chat with admin and assigned users",
    Role.USER: "Only admin and employees can send messages",
}


def can_access_subscription(actor, action: str, employee_id) -> bool:
    predicate = SUBSCRIPTION_ACTIONS.get((Role.parse(actor.role), action))
    return bool(predicate and predicate(actor, employee_id))


def check_subscription_access(actor, action: str, employee_id=None):
    if not can_access_subscription(actor, action, employee_id):
        raise AuthorizationError(SUBSCRIPTION_DENIALS.get(action, "Forbidden"))


def can_contact(sender, recipient) -> bool:
    predicate = CHAT_CONTACTS.get((Role.parse(sender.role), Role.parse(recipient.role)))
    return bool(predicate and predicate(sender, recipient))


def check_contact(sender, recipient):
    """Raise AuthorizationError unless sender may open a chat with recipient."""
    if can_contact(sender, recipient):
        return
    sender_role = Role.parse(sender.role)
    recipient_role = Role.parse(recipient.role)
    if sender_role == Role.EMPLOYEE and recipient_role == Role.USER:
        raise AuthorizationError("You can only chat with users assigned to you")
    raise AuthorizationError(CHAT_DENIALS[sender_role])
