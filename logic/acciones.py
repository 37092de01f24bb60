from __future__ import annotations
from typing import Iterable, Optional

from logic.conciliacion import ids_coincidencias
from logic.modelos import RegistroBanco, ResultadoAccion, ResultadoConciliacion
from infra import store
from infra.config import BaseDatosConfig
from infra.logger import get_logger


_log = get_logger()


def conciliar_uno(db: BaseDatosConfig, movimiento_id: str) -> ResultadoAccion:
    """Marca un movimiento como conciliado. Si ya lo estaba, es un éxito sin cambios."""
    try:
        store.marcar_conciliado(db, movimiento_id)
    except store.StoreError as e:
        _log.error("Error conciliando movimiento %s: %s", movimiento_id, e)
        return ResultadoAccion(ok=False, error=str(e))
    return ResultadoAccion(ok=True, cantidad=1)


def conciliar_coincidencias(db: BaseDatosConfig, resultados: Iterable[ResultadoConciliacion]) -> ResultadoAccion:
    """Concilia en un solo pedido todos los movimientos emparejados."""
    ids = ids_coincidencias(resultados)
    if not ids:
        return ResultadoAccion(ok=True, cantidad=0)
    try:
        cantidad = store.marcar_conciliados(db, ids)
    except store.StoreError as e:
        _log.error("Error conciliando %d movimientos: %s", len(ids), e)
        return ResultadoAccion(ok=False, error=str(e))
    _log.info("Conciliados %d movimientos", cantidad)
    return ResultadoAccion(ok=True, cantidad=cantidad)


def materializar_discrepancia(
    db: BaseDatosConfig,
    registro: RegistroBanco,
    banco_id: str,
    descripcion: Optional[str] = None,
    categoria: str = "Otros",
) -> ResultadoAccion:
    """Registra como gasto una línea del extracto sin movimiento interno.

    Gasto, descuento de saldo y movimiento conciliado se aplican juntos; si
    cualquiera falla no queda ninguno.
    """
    try:
        store.registrar_gasto_desde_discrepancia(
            db, registro, banco_id, descripcion=descripcion, categoria=categoria
        )
    except (store.StoreError, ValueError) as e:
        _log.error("Error creando gasto desde discrepancia: %s", e)
        return ResultadoAccion(ok=False, error=str(e))
    return ResultadoAccion(ok=True, cantidad=1)
