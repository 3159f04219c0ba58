"""
Shared infrastructure for the tenants and payments apps.

    core.models      BaseModel, UUIDPrimaryKeyMixin
    core.services    BaseService, ServiceResult
    core.exceptions  BaseApplicationError, ConflictError
"""
