from __future__ import annotations
import io
from typing import Iterable

import pandas as pd

from logic.modelos import ResultadoConciliacion


ESTADOS = {
    "coincidencia": "Coincidencia",
    "discrepancia": "Discrepancia (en Banco, no en Sistema)",
    "faltante": "Faltante (en Sistema, no en Banco)",
}

COLUMNAS = [
    "estado",
    "fecha_banco",
    "desc_banco",
    "monto_banco",
    "movimiento_id",
    "fecha_interno",
    "desc_interno",
    "tipo_interno",
    "monto_interno",
]


def resultados_a_dataframe(resultados: Iterable[ResultadoConciliacion]) -> pd.DataFrame:
    """Una fila por resultado; el monto interno va con signo para compararlo con el banco."""
    rows = []
    for r in resultados:
        b, m = r.registro_banco, r.movimiento
        rows.append({
            "estado": ESTADOS[r.tipo],
            "fecha_banco": b.fecha if b else None,
            "desc_banco": b.descripcion if b else "",
            "monto_banco": b.monto if b else None,
            "movimiento_id": m.id if m else "",
            "fecha_interno": m.fecha if m else None,
            "desc_interno": m.descripcion if m else "",
            "tipo_interno": m.tipo if m else "",
            "monto_interno": m.monto_con_signo if m else None,
        })
    df = pd.DataFrame(rows, columns=COLUMNAS)
    for col in ("fecha_banco", "fecha_interno"):
        df[col] = pd.to_datetime(df[col], errors="coerce")
    for col in ("monto_banco", "monto_interno"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def dataframe_a_excel_bytes(
    df: pd.DataFrame,
    hoja: str = "Conciliacion",
    formatos_fecha: dict[str, str] | None = None,
) -> bytes:
    """Arma el .xlsx de la conciliación en memoria.

    Las fechas quedan como celdas fecha de Excel; `formatos_fecha`
    ({columna: formato}) solo cambia cómo se muestran.
    """
    buff = io.BytesIO()
    with pd.ExcelWriter(buff, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=hoja)
        if formatos_fecha:
            ws = writer.sheets[hoja]
            headers = [c.value for c in ws[1]]
            for col_name, fmt in formatos_fecha.items():
                if col_name in headers:
                    col_idx = headers.index(col_name) + 1
                    for (cell,) in ws.iter_rows(min_row=2, min_col=col_idx, max_col=col_idx):
                        cell.number_format = fmt
    return buff.getvalue()


def resultados_a_excel_bytes(resultados: Iterable[ResultadoConciliacion], formato_fecha: str = "DD/MM/YYYY") -> bytes:
    df = resultados_a_dataframe(resultados)
    return dataframe_a_excel_bytes(
        df,
        hoja="Conciliacion",
        formatos_fecha={"fecha_banco": formato_fecha, "fecha_interno": formato_fecha},
    )
