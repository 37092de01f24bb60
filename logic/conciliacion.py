from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Sequence

from logic.modelos import (
    MovimientoFinanciero,
    RegistroBanco,
    ResultadoConciliacion,
    TIPOS_RESULTADO,
)
from infra.config import Config


@dataclass(frozen=True)
class Parametros:
    tolerancia_importe: float = 0.01
    tolerancia_dias: int = 3

    @classmethod
    def desde_config(cls, cfg: Config) -> "Parametros":
        return cls(
            tolerancia_importe=float(cfg.conciliacion.tolerancia_importe_default),
            tolerancia_dias=int(cfg.conciliacion.tolerancia_dias_default),
        )


def _a_fecha(valor: date | datetime) -> date:
    if isinstance(valor, datetime):
        return valor.date()
    return valor


def diferencia_dias(a: date | datetime, b: date | datetime) -> int:
    """Distancia en días calendario enteros, ignorando la hora."""
    return abs((_a_fecha(a) - _a_fecha(b)).days)


def es_candidato(
    registro: RegistroBanco,
    movimiento: MovimientoFinanciero,
    params: Parametros = Parametros(),
) -> bool:
    """True si el movimiento puede respaldar la línea del extracto.

    - Importe: |banco - interno con signo| estrictamente menor a la tolerancia
      (la diferencia se redondea a 6 decimales para descartar ruido de float)
    - Fecha: a lo sumo `tolerancia_dias` días de distancia
    """
    diff = round(abs(registro.monto - movimiento.monto_con_signo), 6)
    if diff >= params.tolerancia_importe:
        return False
    return diferencia_dias(registro.fecha, movimiento.fecha) <= params.tolerancia_dias


def conciliar(
    registros: Sequence[RegistroBanco],
    movimientos: Sequence[MovimientoFinanciero],
    params: Parametros = Parametros(),
) -> list[ResultadoConciliacion]:
    """Clasifica el extracto contra los movimientos no conciliados de una cuenta.

    Greedy first-fit: cada línea del banco, en el orden del archivo, toma el
    primer movimiento elegible todavía no consumido. Las líneas sin pareja son
    discrepancias; los movimientos nunca consumidos, faltantes (al final y en
    su orden original). No modifica nada: las acciones las decide quien llama.
    """
    elegibles = [m for m in movimientos if not m.conciliado]
    consumidos: set[str] = set()
    resultados: list[ResultadoConciliacion] = []

    for registro in registros:
        elegido = None
        for mov in elegibles:
            if mov.id in consumidos:
                continue
            if es_candidato(registro, mov, params):
                elegido = mov
                break

        if elegido is not None:
            consumidos.add(elegido.id)
            resultados.append(ResultadoConciliacion("coincidencia", registro, elegido))
        else:
            resultados.append(ResultadoConciliacion("discrepancia", registro_banco=registro))

    for mov in elegibles:
        if mov.id not in consumidos:
            # un mismo id repetido en la entrada se informa una sola vez
            consumidos.add(mov.id)
            resultados.append(ResultadoConciliacion("faltante", movimiento=mov))

    return resultados


def agrupar(resultados: Iterable[ResultadoConciliacion]) -> dict[str, list[ResultadoConciliacion]]:
    """Separa los resultados por tipo conservando el orden relativo."""
    grupos: dict[str, list[ResultadoConciliacion]] = {t: [] for t in TIPOS_RESULTADO}
    for r in resultados:
        grupos[r.tipo].append(r)
    return grupos


def resumen(resultados: Iterable[ResultadoConciliacion]) -> dict[str, int]:
    return {tipo: len(items) for tipo, items in agrupar(resultados).items()}


def ids_coincidencias(resultados: Iterable[ResultadoConciliacion]) -> list[str]:
    return [r.movimiento.id for r in resultados if r.tipo == "coincidencia" and r.movimiento]
