"""Errores del dominio de solicitudes e inventario.

Los routers los traducen a HTTPException; `reintentable` indica si el cliente
puede repetir la operación sin riesgo.
"""


class ContenedoresError(Exception):
    """Base de todos los errores del dominio."""

    code = "ERROR"
    http_status = 500
    reintentable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RequestNotFoundError(ContenedoresError):
    """La solicitud no existe (o desapareció antes de completar la entrega)."""

    code = "SOLICITUD_NO_ENCONTRADA"
    http_status = 404

    def __init__(self, id_solicitud: int):
        super().__init__(f"La solicitud {id_solicitud} no existe.")
        self.id_solicitud = id_solicitud


class DeliveryConflictError(ContenedoresError):
    """Colisión con otra transacción concurrente. No se ha modificado nada."""

    code = "CONFLICTO_CONCURRENCIA"
    http_status = 409
    reintentable = True

    def __init__(self, id_solicitud: int, motivo: str = ""):
        message = (
            f"Hubo un problema de concurrencia al entregar la solicitud {id_solicitud}. "
            "Por favor, inténtelo de nuevo."
        )
        if motivo:
            message = f"{message} ({motivo})"
        super().__init__(message)
        self.id_solicitud = id_solicitud


class DeliveryError(ContenedoresError):
    """Fallo inesperado durante la entrega. La operación fue revertida."""

    code = "ERROR_ENTREGA"

    def __init__(self, id_solicitud: int, motivo: str):
        super().__init__(
            f"Error al marcar la solicitud {id_solicitud} como entregada: {motivo}. "
            "La operación fue revertida."
        )
        self.id_solicitud = id_solicitud
