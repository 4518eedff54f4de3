# app/core/errors.py
"""
Errores de dominio del flujo de autenticación.

Los servicios levantan estas excepciones y el handler registrado en
app.main las traduce a respuestas JSON con el status correspondiente.
"""
from fastapi import status


class AuthError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AuthError):
    """Input mal formado (p.ej. un código que no es de 6 dígitos)."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input"


class AuthenticationError(AuthError):
    # nunca revela si el identificador existe
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid credentials"


class InvalidCodeError(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid verification code"


class StateError(AuthError):
    """No hay enrolamiento/desafío pendiente, o ya expiró."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "No pending verification, please start again"


class ConflictError(AuthError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Identifier already registered"


class NotFoundError(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Principal not found"


class ForbiddenError(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden"

    def __init__(self, detail: str | None = None, requires_totp: bool = False):
        super().__init__(detail)
        self.requires_totp = requires_totp


class DecryptionError(AuthError):
    """Ciphertext corrupto o clave equivocada. Se loguea, nunca se expone."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"


class TooManyAttemptsError(AuthError):
    """Demasiados códigos TOTP fallidos para el principal; bloqueo temporal."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many failed attempts, try again later"
