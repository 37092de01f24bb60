"""
Almacén de movimientos financieros (SQLite).

Contiene las cuentas bancarias, los movimientos internos (ingresos/egresos)
y los gastos. Es el único lugar donde se escribe: el conciliador solo lee una
foto de los movimientos no conciliados y las acciones piden cambios acá.

Tablas
------
bancos
    id TEXT PK, nombre, saldo_centavos, creado_en
movimientos_financieros
    id TEXT PK, tipo ('Ingreso' | 'Egreso'), monto_centavos (>= 0),
    descripcion, fecha (ISO), conciliado (0/1), referencia_externa,
    banco_id -> bancos.id, creado_en
gastos
    id TEXT PK, descripcion, monto_centavos, categoria, fecha, banco_id,
    creado_en

Notas
-----
- Los importes se guardan en centavos enteros.
- Cada operación pública corre en una única transacción (`transaccion`):
  o se aplican todos sus cambios o ninguno.
- No hay control de concurrencia optimista: dos operadores conciliando el
  mismo movimiento a la vez simplemente lo marcan dos veces.
"""
from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterator, Optional, Sequence

from logic.modelos import (
    Banco,
    Gasto,
    MovimientoFinanciero,
    NuevoMovimiento,
    RegistroBanco,
    TIPOS_MOVIMIENTO,
)
from infra.config import BaseDatosConfig
from infra.logger import get_logger


_log = get_logger()

_LOTE_IDS = 500


class StoreError(Exception):
    """Error al leer o escribir en el almacén de movimientos."""


class MovimientoNoEncontrado(StoreError):
    pass


class BancoNoEncontrado(StoreError):
    pass


class TipoMovimientoInvalido(StoreError, ValueError):
    pass


_SCHEMA = """
CREATE TABLE IF NOT EXISTS bancos (
    id              TEXT PRIMARY KEY,
    nombre          TEXT NOT NULL,
    saldo_centavos  INTEGER NOT NULL DEFAULT 0,
    creado_en       TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS movimientos_financieros (
    id                  TEXT PRIMARY KEY,
    tipo                TEXT NOT NULL CHECK (tipo IN ('Ingreso', 'Egreso')),
    monto_centavos      INTEGER NOT NULL CHECK (monto_centavos >= 0),
    descripcion         TEXT,
    fecha               TEXT NOT NULL,
    conciliado          INTEGER NOT NULL DEFAULT 0,
    referencia_externa  TEXT,
    banco_id            TEXT REFERENCES bancos(id),
    creado_en           TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_movimientos_pendientes
    ON movimientos_financieros (banco_id, conciliado);

CREATE TABLE IF NOT EXISTS gastos (
    id              TEXT PRIMARY KEY,
    descripcion     TEXT NOT NULL,
    monto_centavos  INTEGER NOT NULL,
    categoria       TEXT NOT NULL,
    fecha           TEXT NOT NULL,
    banco_id        TEXT REFERENCES bancos(id),
    creado_en       TEXT NOT NULL
);
"""


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _a_centavos(monto: float) -> int:
    return int(round(monto * 100))


def _de_centavos(centavos: int) -> float:
    return centavos / 100.0


def _now_utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _nuevo_id() -> str:
    return str(uuid.uuid4())


def _connect(db: BaseDatosConfig) -> sqlite3.Connection:
    """Abre la conexión con claves foráneas activas y el esquema creado.

    Si no se puede abrir o crear el esquema, lanza StoreError.
    """
    try:
        conn = sqlite3.connect(db.path)
    except sqlite3.Error as e:
        raise StoreError(f"No se pudo abrir la base {db.path}: {e}") from e
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.executescript(_SCHEMA)
    except sqlite3.Error as e:
        conn.close()
        raise StoreError(f"No se pudo preparar la base {db.path}: {e}") from e
    return conn


@contextmanager
def transaccion(db: BaseDatosConfig) -> Iterator[sqlite3.Connection]:
    """Conexión con commit al salir y rollback ante cualquier excepción.

    Los errores de sqlite se relanzan como StoreError.
    """
    conn = _connect(db)
    try:
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise StoreError(str(e)) from e
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.close()


def _row_a_movimiento(row: tuple) -> MovimientoFinanciero:
    id_, tipo, monto_c, descripcion, fecha, conciliado, ref, banco_id = row
    if tipo not in TIPOS_MOVIMIENTO:
        raise TipoMovimientoInvalido(f"Movimiento {id_} con tipo desconocido: {tipo!r}")
    return MovimientoFinanciero(
        id=id_,
        tipo=tipo,
        monto=_de_centavos(monto_c),
        fecha=date.fromisoformat(fecha[:10]),
        conciliado=bool(conciliado),
        descripcion=descripcion or "",
        referencia_externa=ref,
        banco_id=banco_id,
    )


_COLS_MOVIMIENTO = (
    "id, tipo, monto_centavos, descripcion, fecha, conciliado, referencia_externa, banco_id"
)


def _obtener_banco(conn: sqlite3.Connection, banco_id: str) -> Optional[Banco]:
    row = conn.execute(
        "SELECT id, nombre, saldo_centavos FROM bancos WHERE id = ?;", (banco_id,)
    ).fetchone()
    if row is None:
        return None
    return Banco(id=row[0], nombre=row[1], saldo_actual=_de_centavos(row[2]))


def _obtener_movimiento(conn: sqlite3.Connection, movimiento_id: str) -> Optional[MovimientoFinanciero]:
    row = conn.execute(
        f"SELECT {_COLS_MOVIMIENTO} FROM movimientos_financieros WHERE id = ?;",
        (movimiento_id,),
    ).fetchone()
    return _row_a_movimiento(row) if row else None


def _validar_movimiento(nuevo: NuevoMovimiento) -> None:
    if nuevo.tipo not in TIPOS_MOVIMIENTO:
        raise TipoMovimientoInvalido(
            f"Tipo de movimiento inválido: {nuevo.tipo!r} (se espera Ingreso o Egreso)"
        )
    if nuevo.monto < 0:
        raise ValueError(f"El monto de un movimiento no puede ser negativo: {nuevo.monto}")


def _insertar_movimiento(conn: sqlite3.Connection, nuevo: NuevoMovimiento) -> MovimientoFinanciero:
    _validar_movimiento(nuevo)
    if nuevo.banco_id is not None and _obtener_banco(conn, nuevo.banco_id) is None:
        raise BancoNoEncontrado(f"No existe el banco {nuevo.banco_id}")
    mov_id = _nuevo_id()
    conn.execute(
        """
        INSERT INTO movimientos_financieros (
            id, tipo, monto_centavos, descripcion, fecha,
            conciliado, referencia_externa, banco_id, creado_en
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            mov_id,
            nuevo.tipo,
            _a_centavos(nuevo.monto),
            nuevo.descripcion,
            nuevo.fecha.isoformat(),
            int(nuevo.conciliado),
            nuevo.referencia_externa,
            nuevo.banco_id,
            _now_utc_iso(),
        ),
    )
    return MovimientoFinanciero(
        id=mov_id,
        tipo=nuevo.tipo,
        monto=_de_centavos(_a_centavos(nuevo.monto)),
        fecha=nuevo.fecha,
        conciliado=nuevo.conciliado,
        descripcion=nuevo.descripcion,
        referencia_externa=nuevo.referencia_externa,
        banco_id=nuevo.banco_id,
    )


def _sumar_saldo(conn: sqlite3.Connection, banco_id: str, delta: float) -> Banco:
    conn.execute(
        "UPDATE bancos SET saldo_centavos = saldo_centavos + ? WHERE id = ?;",
        (_a_centavos(delta), banco_id),
    )
    banco = _obtener_banco(conn, banco_id)
    if banco is None:
        raise BancoNoEncontrado(f"No existe el banco {banco_id}")
    return banco


def _insertar_gasto(
    conn: sqlite3.Connection,
    descripcion: str,
    monto: float,
    fecha: date,
    categoria: str,
    banco_id: Optional[str],
) -> Gasto:
    gasto_id = _nuevo_id()
    conn.execute(
        """
        INSERT INTO gastos (id, descripcion, monto_centavos, categoria, fecha, banco_id, creado_en)
        VALUES (?, ?, ?, ?, ?, ?, ?);
        """,
        (
            gasto_id,
            descripcion,
            _a_centavos(monto),
            categoria,
            fecha.isoformat(),
            banco_id,
            _now_utc_iso(),
        ),
    )
    return Gasto(
        id=gasto_id,
        descripcion=descripcion,
        monto=monto,
        categoria=categoria,
        fecha=fecha,
        banco_id=banco_id,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(db: BaseDatosConfig) -> None:
    """Crea el archivo y las tablas si no existen. Idempotente."""
    with transaccion(db):
        pass


def crear_banco(db: BaseDatosConfig, nombre: str, saldo_inicial: float = 0.0) -> Banco:
    banco_id = _nuevo_id()
    with transaccion(db) as conn:
        conn.execute(
            "INSERT INTO bancos (id, nombre, saldo_centavos, creado_en) VALUES (?, ?, ?, ?);",
            (banco_id, nombre, _a_centavos(saldo_inicial), _now_utc_iso()),
        )
    return Banco(id=banco_id, nombre=nombre, saldo_actual=_de_centavos(_a_centavos(saldo_inicial)))


def listar_bancos(db: BaseDatosConfig) -> list[Banco]:
    with transaccion(db) as conn:
        rows = conn.execute(
            "SELECT id, nombre, saldo_centavos FROM bancos ORDER BY nombre;"
        ).fetchall()
    return [Banco(id=r[0], nombre=r[1], saldo_actual=_de_centavos(r[2])) for r in rows]


def obtener_banco(db: BaseDatosConfig, banco_id: str) -> Optional[Banco]:
    with transaccion(db) as conn:
        return _obtener_banco(conn, banco_id)


def obtener_movimiento(db: BaseDatosConfig, movimiento_id: str) -> Optional[MovimientoFinanciero]:
    with transaccion(db) as conn:
        return _obtener_movimiento(conn, movimiento_id)


def listar_no_conciliados(db: BaseDatosConfig, banco_id: Optional[str] = None) -> list[MovimientoFinanciero]:
    """Movimientos con conciliado = 0, del más reciente al más antiguo.

    A igual fecha se respeta el orden de alta.
    """
    query = f"SELECT {_COLS_MOVIMIENTO} FROM movimientos_financieros WHERE conciliado = 0"
    params: list = []
    if banco_id is not None:
        query += " AND banco_id = ?"
        params.append(banco_id)
    query += " ORDER BY fecha DESC, rowid ASC;"

    with transaccion(db) as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_a_movimiento(r) for r in rows]


def marcar_conciliado(db: BaseDatosConfig, movimiento_id: str) -> None:
    """Marca un movimiento como conciliado. Repetirlo no tiene efecto."""
    with transaccion(db) as conn:
        cur = conn.execute(
            "UPDATE movimientos_financieros SET conciliado = 1 WHERE id = ?;",
            (movimiento_id,),
        )
        if cur.rowcount == 0:
            raise MovimientoNoEncontrado(f"No existe el movimiento {movimiento_id}")


def marcar_conciliados(db: BaseDatosConfig, ids: Sequence[str]) -> int:
    """Concilia varios movimientos en una sola transacción.

    Si algún id no existe no se marca ninguno. Devuelve la cantidad marcada.
    """
    unicos = list(dict.fromkeys(ids))
    if not unicos:
        return 0

    total = 0
    with transaccion(db) as conn:
        for i in range(0, len(unicos), _LOTE_IDS):
            lote = unicos[i:i + _LOTE_IDS]
            marcas = ", ".join("?" for _ in lote)
            existentes = {
                r[0]
                for r in conn.execute(
                    f"SELECT id FROM movimientos_financieros WHERE id IN ({marcas});", lote
                )
            }
            faltan = [x for x in lote if x not in existentes]
            if faltan:
                raise MovimientoNoEncontrado(f"No existen los movimientos: {', '.join(faltan)}")
            cur = conn.execute(
                f"UPDATE movimientos_financieros SET conciliado = 1 WHERE id IN ({marcas});", lote
            )
            total += cur.rowcount
    return total


def agregar_movimiento(db: BaseDatosConfig, nuevo: NuevoMovimiento) -> MovimientoFinanciero:
    _validar_movimiento(nuevo)
    with transaccion(db) as conn:
        return _insertar_movimiento(conn, nuevo)


def ajustar_saldo(db: BaseDatosConfig, banco_id: str, delta: float) -> Banco:
    """Suma `delta` (con signo) al saldo del banco."""
    with transaccion(db) as conn:
        return _sumar_saldo(conn, banco_id, delta)


def crear_gasto(
    db: BaseDatosConfig,
    descripcion: str,
    monto: float,
    fecha: date,
    categoria: str = "Otros",
    banco_id: Optional[str] = None,
) -> Gasto:
    with transaccion(db) as conn:
        return _insertar_gasto(conn, descripcion, monto, fecha, categoria, banco_id)


def registrar_gasto_desde_discrepancia(
    db: BaseDatosConfig,
    registro: RegistroBanco,
    banco_id: str,
    descripcion: Optional[str] = None,
    categoria: str = "Otros",
) -> Gasto:
    """Da de alta una línea del extracto que no estaba en el sistema.

    En una sola transacción:
    1. crea el gasto por |monto|
    2. descuenta |monto| del saldo del banco
    3. agrega un Egreso ya conciliado (viene del propio extracto)
    """
    monto = abs(registro.monto)
    desc = descripcion or registro.descripcion or "Discrepancia bancaria"

    with transaccion(db) as conn:
        if _obtener_banco(conn, banco_id) is None:
            raise BancoNoEncontrado(f"No existe el banco {banco_id}")
        gasto = _insertar_gasto(conn, desc, monto, registro.fecha, categoria, banco_id)
        _sumar_saldo(conn, banco_id, -monto)
        _insertar_movimiento(
            conn,
            NuevoMovimiento(
                tipo="Egreso",
                monto=monto,
                fecha=registro.fecha,
                descripcion=desc,
                banco_id=banco_id,
                conciliado=True,
            ),
        )
    _log.info("Gasto %s creado desde discrepancia (%.2f) en banco %s", gasto.id, monto, banco_id)
    return gasto
