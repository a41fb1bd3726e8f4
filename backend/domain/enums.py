"""
Domain enums shared by models, services and routers.
"""

from enum import Enum


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    CUSTOMER = "CUSTOMER"


class UserType(str, Enum):
    ADMIN = "admin"
    CUSTOMER = "customer"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    SHIPPED = "SHIPPED"
    BACKORDERED = "BACKORDERED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class CancelledBy(str, Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"


class CategoryType(str, Enum):
    PHYSICAL = "PHYSICAL"
    DIGITAL = "DIGITAL"


class EnrollmentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    SUSPENDED = "SUSPENDED"


class EmailStatus(str, Enum):
    SENT = "SENT"
    FAILED = "FAILED"


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    SEND_EMAIL = "SEND_EMAIL"
    ARCHIVE = "ARCHIVE"
    RESTORE = "RESTORE"
    STATUS_CHANGE = "STATUS_CHANGE"
    CANCEL = "CANCEL"
    SETTING_CHANGE = "SETTING_CHANGE"


class Permission(str, Enum):
    # Customers
    VIEW_CUSTOMERS = "VIEW_CUSTOMERS"
    CREATE_CUSTOMERS = "CREATE_CUSTOMERS"
    EDIT_CUSTOMERS = "EDIT_CUSTOMERS"
    DELETE_CUSTOMERS = "DELETE_CUSTOMERS"
    EXPORT_CUSTOMERS = "EXPORT_CUSTOMERS"
    ARCHIVE_CUSTOMERS = "ARCHIVE_CUSTOMERS"
    RESTORE_CUSTOMERS = "RESTORE_CUSTOMERS"
    CHANGE_CUSTOMER_PASSWORD = "CHANGE_CUSTOMER_PASSWORD"

    # Courses
    VIEW_COURSES = "VIEW_COURSES"
    CREATE_COURSES = "CREATE_COURSES"
    EDIT_COURSES = "EDIT_COURSES"
    DELETE_COURSES = "DELETE_COURSES"
    EXPORT_COURSES = "EXPORT_COURSES"

    # Tags
    VIEW_TAGS = "VIEW_TAGS"
    CREATE_TAGS = "CREATE_TAGS"
    EDIT_TAGS = "EDIT_TAGS"
    DELETE_TAGS = "DELETE_TAGS"
    EXPORT_TAGS = "EXPORT_TAGS"

    # Products / categories / shipping
    VIEW_PRODUCTS = "VIEW_PRODUCTS"
    CREATE_PRODUCTS = "CREATE_PRODUCTS"
    EDIT_PRODUCTS = "EDIT_PRODUCTS"
    DELETE_PRODUCTS = "DELETE_PRODUCTS"
    MANAGE_PRODUCTS = "MANAGE_PRODUCTS"

    # Orders
    VIEW_ORDERS = "VIEW_ORDERS"
    EDIT_ORDERS = "EDIT_ORDERS"
    MANAGE_ORDERS = "MANAGE_ORDERS"

    # Email
    VIEW_EMAIL_TEMPLATES = "VIEW_EMAIL_TEMPLATES"
    CREATE_EMAIL_TEMPLATES = "CREATE_EMAIL_TEMPLATES"
    EDIT_EMAIL_TEMPLATES = "EDIT_EMAIL_TEMPLATES"
    DELETE_EMAIL_TEMPLATES = "DELETE_EMAIL_TEMPLATES"
    SEND_INDIVIDUAL_EMAIL = "SEND_INDIVIDUAL_EMAIL"
    SEND_BULK_EMAIL = "SEND_BULK_EMAIL"
    VIEW_EMAIL_LOGS = "VIEW_EMAIL_LOGS"
    MANAGE_EMAIL_SETTINGS = "MANAGE_EMAIL_SETTINGS"

    # Administration
    VIEW_ADMINS = "VIEW_ADMINS"
    CREATE_ADMINS = "CREATE_ADMINS"
    EDIT_ADMINS = "EDIT_ADMINS"
    DELETE_ADMINS = "DELETE_ADMINS"
    MANAGE_PERMISSIONS = "MANAGE_PERMISSIONS"
    VIEW_AUDIT_LOGS = "VIEW_AUDIT_LOGS"
    MANAGE_SYSTEM_SETTINGS = "MANAGE_SYSTEM_SETTINGS"
    MANAGE_PAYMENT_SETTINGS = "MANAGE_PAYMENT_SETTINGS"

    # Self
    EDIT_PROFILE = "EDIT_PROFILE"
