from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from typing import Literal, Optional


TipoMovimiento = Literal["Ingreso", "Egreso"]
TipoResultado = Literal["coincidencia", "discrepancia", "faltante"]

TIPOS_MOVIMIENTO: tuple[str, ...] = ("Ingreso", "Egreso")
TIPOS_RESULTADO: tuple[str, ...] = ("coincidencia", "discrepancia", "faltante")


@dataclass(frozen=True, eq=False)
class RegistroBanco:
    """Una línea del extracto bancario subido.

    Se compara por identidad: dos líneas con los mismos valores siguen siendo
    registros distintos del extracto.
    """
    fecha: date          # día, sin hora
    descripcion: str     # texto libre, puede ser ""
    monto: float         # con signo: negativo = salida, positivo = entrada


@dataclass(frozen=True)
class MovimientoFinanciero:
    id: str
    tipo: TipoMovimiento
    monto: float                  # magnitud, siempre >= 0
    fecha: date
    conciliado: bool = False
    descripcion: str = ""
    referencia_externa: Optional[str] = None
    banco_id: Optional[str] = None

    @property
    def monto_con_signo(self) -> float:
        return -self.monto if self.tipo == "Egreso" else self.monto


@dataclass(frozen=True)
class ResultadoConciliacion:
    tipo: TipoResultado
    registro_banco: Optional[RegistroBanco] = None
    movimiento: Optional[MovimientoFinanciero] = None

    def __post_init__(self) -> None:
        if self.tipo not in TIPOS_RESULTADO:
            raise ValueError(f"Tipo de resultado desconocido: {self.tipo!r}")
        necesita_registro = self.tipo in ("coincidencia", "discrepancia")
        necesita_movimiento = self.tipo in ("coincidencia", "faltante")
        if necesita_registro != (self.registro_banco is not None):
            raise ValueError(f"Resultado {self.tipo!r} con registro de banco inconsistente")
        if necesita_movimiento != (self.movimiento is not None):
            raise ValueError(f"Resultado {self.tipo!r} con movimiento inconsistente")


@dataclass(frozen=True)
class Banco:
    id: str
    nombre: str
    saldo_actual: float


@dataclass(frozen=True)
class NuevoMovimiento:
    tipo: TipoMovimiento
    monto: float
    fecha: date
    descripcion: str = ""
    banco_id: Optional[str] = None
    conciliado: bool = False
    referencia_externa: Optional[str] = None


@dataclass(frozen=True)
class Gasto:
    id: str
    descripcion: str
    monto: float
    categoria: str
    fecha: date
    banco_id: Optional[str] = None


@dataclass(frozen=True)
class ResultadoAccion:
    ok: bool
    cantidad: int = 0
    error: Optional[str] = None
