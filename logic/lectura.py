from __future__ import annotations

import io
import math
import re
import unicodedata
from datetime import date, datetime
from numbers import Integral, Real
from pathlib import Path
from typing import BinaryIO, Iterable, Mapping, Optional, TextIO, Union

import pandas as pd

from logic.modelos import RegistroBanco
from infra.config import LecturaConfig
from infra.logger import get_logger


_log = get_logger()

COL_FECHA = "Fecha"
COL_DESCRIPCION = "Descripción"
COL_MONTO = "Monto"

Archivo = Union[str, Path, TextIO, BinaryIO]


def _clave(value: object) -> str:
    """Clave tolerante de encabezado: sin BOM, sin tildes, minúsculas."""
    texto = str(value).replace("\ufeff", "").strip().lower()
    normalized = unicodedata.normalize("NFKD", texto)
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


_CANONICAS = {
    _clave(COL_FECHA): COL_FECHA,
    _clave(COL_DESCRIPCION): COL_DESCRIPCION,
    _clave(COL_MONTO): COL_MONTO,
}


def _vacio(valor) -> bool:
    if valor is None:
        return True
    if isinstance(valor, str):
        return not valor.strip()
    try:
        return bool(pd.isna(valor))
    except (TypeError, ValueError):
        return False


def _normalizar_descripcion(valor) -> str:
    """Descripción como texto; un número entero (p. ej. nro. de comprobante) sin `.0`."""
    if _vacio(valor):
        return ""
    if isinstance(valor, str):
        return valor.strip()
    if isinstance(valor, Integral):
        return str(int(valor))
    if isinstance(valor, Real):
        numero = float(valor)
        if math.isfinite(numero) and numero.is_integer():
            return str(int(numero))
        return str(valor)
    return str(valor)


def limpiar_monto(valor) -> Optional[float]:
    """Convierte el monto a float o devuelve None si no es un número finito.

    Se descarta todo lo que no sea dígito, signo o punto decimal: "$ -1,500.25"
    queda en -1500.25.
    """
    if _vacio(valor):
        return None
    if isinstance(valor, Real) and not isinstance(valor, bool):
        numero = float(valor)
    else:
        limpio = re.sub(r"[^0-9.\-]", "", str(valor))
        if not limpio:
            return None
        try:
            numero = float(limpio)
        except ValueError:
            return None
    if not math.isfinite(numero):
        return None
    return numero


def parsear_fecha(valor, formatos: Optional[Iterable[str]] = None) -> Optional[date]:
    """Fecha calendario del valor (la hora se descarta) o None si no se puede leer.

    Se prueban `formatos` en orden (por defecto los de `LecturaConfig`) y al
    final el parseo genérico de pandas.
    """
    if _vacio(valor):
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor

    texto = str(valor).strip()
    for fmt in formatos if formatos is not None else LecturaConfig().fecha_formatos:
        try:
            return datetime.strptime(texto, fmt).date()
        except ValueError:
            continue

    ts = pd.to_datetime(texto, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.date()


def _buscar(fila: Mapping, nombre: str):
    """Valor de la columna canónica, aceptando variantes sin tilde o con BOM."""
    if nombre in fila:
        return fila[nombre]
    objetivo = _clave(nombre)
    for k, v in fila.items():
        if _clave(k) == objetivo:
            return v
    return None


def normalizar_fila(fila: Mapping, formatos: Optional[Iterable[str]] = None) -> Optional[RegistroBanco]:
    """Convierte una fila cruda del extracto en RegistroBanco, o None si se rechaza."""
    fecha_raw = _buscar(fila, COL_FECHA)
    monto_raw = _buscar(fila, COL_MONTO)
    if _vacio(fecha_raw) or _vacio(monto_raw):
        return None

    monto = limpiar_monto(monto_raw)
    if monto is None:
        return None
    fecha = parsear_fecha(fecha_raw, formatos)
    if fecha is None:
        return None

    return RegistroBanco(
        fecha=fecha,
        descripcion=_normalizar_descripcion(_buscar(fila, COL_DESCRIPCION)),
        monto=monto,
    )


def _canonicalizar_columnas(df: pd.DataFrame) -> pd.DataFrame:
    """Renombra Fecha/Descripción/Monto a su forma canónica (primera coincidencia gana)."""
    rename: dict[str, str] = {}
    vistos: set[str] = set()
    for col in df.columns:
        canon = _CANONICAS.get(_clave(col))
        if canon and canon not in vistos:
            rename[col] = canon
            vistos.add(canon)
    return df.rename(columns=rename)


def _rebobinar(obj) -> None:
    if hasattr(obj, "seek"):
        try:
            obj.seek(0)
        except (OSError, ValueError):
            pass


def leer_extracto(path_or_file: Archivo, lectura: Optional[LecturaConfig] = None) -> pd.DataFrame:
    """Lee el CSV del extracto probando encodings y separadores configurados.

    Todas las celdas se leen como texto; la conversión de tipos queda para
    `normalizar_fila`. Requiere al menos las columnas Fecha y Monto.
    """
    lectura = lectura or LecturaConfig()
    if isinstance(path_or_file, (bytes, bytearray)):
        path_or_file = io.BytesIO(path_or_file)

    ultimo_error: Exception | None = None
    for enc in lectura.csv_encodings:
        for sep in lectura.csv_separadores:
            _rebobinar(path_or_file)
            try:
                df = pd.read_csv(
                    path_or_file,
                    sep=sep,
                    encoding=enc,
                    engine="python",
                    dtype=str,
                    keep_default_na=False,
                    skip_blank_lines=True,
                )
            except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                ultimo_error = e
                continue

            df = _canonicalizar_columnas(df)
            if COL_FECHA in df.columns and COL_MONTO in df.columns:
                _log.debug("Extracto leído con encoding=%s sep=%r (%d filas)", enc, sep, len(df))
                return df

    if ultimo_error is not None and not isinstance(ultimo_error, pd.errors.ParserError):
        raise ValueError(f"No se pudo leer el extracto: {ultimo_error}") from ultimo_error
    raise ValueError(
        f"El extracto debe tener encabezado con columnas {COL_FECHA}, {COL_DESCRIPCION} y {COL_MONTO}"
    )


def normalizar_df(df: pd.DataFrame, formatos: Optional[Iterable[str]] = None) -> list[RegistroBanco]:
    """Aplica `normalizar_fila` en el orden del archivo, salteando filas inválidas."""
    out: list[RegistroBanco] = []
    descartadas = 0
    for fila in df.to_dict(orient="records"):
        registro = normalizar_fila(fila, formatos)
        if registro is None:
            descartadas += 1
            continue
        out.append(registro)
    if descartadas:
        _log.info("Extracto: %d fila(s) descartadas por fecha o monto inválido", descartadas)
    return out


def cargar_extracto(path_or_file: Archivo, lectura: Optional[LecturaConfig] = None) -> list[RegistroBanco]:
    lectura = lectura or LecturaConfig()
    return normalizar_df(leer_extracto(path_or_file, lectura), lectura.fecha_formatos)
