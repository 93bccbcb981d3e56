# errors.py
"""Errores del punto de venta.

Todo lo que lanza el núcleo hereda de PosError para que la API y el CLI
puedan atraparlo en un solo lugar.
"""


class PosError(Exception):
    """Base de los errores del punto de venta."""


class EmptyCart(PosError):
    def __init__(self, msg: str = "La venta debe tener al menos un renglón"):
        super().__init__(msg)


class InvalidSale(PosError, ValueError):
    """Renglón mal formado o método de pago desconocido."""


class InvalidChange(PosError, ValueError):
    """Campo no permitido en una actualización parcial."""


class NotFound(PosError, LookupError):
    def __init__(self, entity: str, key):
        super().__init__(f"{entity} no encontrado: {key}")
        self.entity = entity
        self.key = key


class StorageFault(PosError):
    """Falla de la base de datos dentro de una transacción (ya revertida)."""


# Validaciones consultivas del lado del cliente (no las aplica el motor de ventas)

class CustomerRequired(PosError):
    def __init__(self, msg: str = "Selecciona un cliente para venta a crédito"):
        super().__init__(msg)


class CreditLimitExceeded(PosError):
    def __init__(self, customer_id: int, available):
        super().__init__(f"Límite de crédito excedido. Crédito disponible: {available}")
        self.customer_id = customer_id
        self.available = available
