import sqlite3
from datetime import date

from infra import store
from infra.config import BaseDatosConfig
from logic.acciones import conciliar_coincidencias, conciliar_uno, materializar_discrepancia
from logic.conciliacion import conciliar
from logic.modelos import MovimientoFinanciero, NuevoMovimiento, RegistroBanco


def make_tmp_db(tmp_path) -> BaseDatosConfig:
    return BaseDatosConfig(path=tmp_path / "acciones.sqlite")


def _preparar(tmp_path):
    db = make_tmp_db(tmp_path)
    banco = store.crear_banco(db, "Banco Ciudad", 100000)
    m1 = store.agregar_movimiento(db, NuevoMovimiento("Egreso", 50000, date(2024, 3, 2), "Proveedor", banco.id))
    m2 = store.agregar_movimiento(db, NuevoMovimiento("Ingreso", 15000, date(2024, 3, 5), "Cliente", banco.id))
    return db, banco, m1, m2


def test_conciliar_uno(tmp_path):
    db, banco, m1, _ = _preparar(tmp_path)
    res = conciliar_uno(db, m1.id)
    assert res.ok and res.cantidad == 1
    assert conciliar_uno(db, m1.id).ok
    assert m1.id not in {m.id for m in store.listar_no_conciliados(db, banco.id)}


def test_conciliar_uno_inexistente_informa_error(tmp_path):
    db, *_ = _preparar(tmp_path)
    res = conciliar_uno(db, "no-existe")
    assert not res.ok
    assert "no-existe" in res.error


def test_flujo_completo(tmp_path):
    """Cargar pendientes, conciliar, aplicar coincidencias y dar de alta la discrepancia."""
    db, banco, m1, m2 = _preparar(tmp_path)
    extracto = [
        RegistroBanco(date(2024, 3, 1), "Pago proveedor", -50000),
        RegistroBanco(date(2024, 3, 1), "Comisión", -2000),
    ]
    resultados = conciliar(extracto, store.listar_no_conciliados(db, banco.id))
    assert [r.tipo for r in resultados] == ["coincidencia", "discrepancia", "faltante"]

    res = conciliar_coincidencias(db, resultados)
    assert res.ok and res.cantidad == 1

    discrepancia = resultados[1].registro_banco
    res = materializar_discrepancia(db, discrepancia, banco.id)
    assert res.ok
    assert store.obtener_banco(db, banco.id).saldo_actual == 98000

    pendientes = store.listar_no_conciliados(db, banco.id)
    assert [m.id for m in pendientes] == [m2.id]

    # una nueva corrida ya no encuentra la comisión como discrepancia ni el pago como faltante
    again = conciliar(extracto[:1], pendientes)
    assert [r.tipo for r in again] == ["discrepancia", "faltante"]


def test_conciliar_coincidencias_sin_matches(tmp_path):
    db, banco, *_ = _preparar(tmp_path)
    resultados = conciliar([], store.listar_no_conciliados(db, banco.id))
    res = conciliar_coincidencias(db, resultados)
    assert res.ok and res.cantidad == 0
    assert len(store.listar_no_conciliados(db, banco.id)) == 2


def test_conciliar_coincidencias_falla_sin_cambios(tmp_path):
    db, banco, m1, _ = _preparar(tmp_path)
    fantasma = MovimientoFinanciero(id="fantasma", tipo="Egreso", monto=1, fecha=date(2024, 3, 1))
    resultados = conciliar(
        [RegistroBanco(date(2024, 3, 2), "", -50000), RegistroBanco(date(2024, 3, 1), "", -1)],
        [m1, fantasma],
    )
    res = conciliar_coincidencias(db, resultados)
    assert not res.ok and res.error
    assert m1.id in {m.id for m in store.listar_no_conciliados(db, banco.id)}


def test_materializar_discrepancia_banco_inexistente(tmp_path):
    db, banco, *_ = _preparar(tmp_path)
    res = materializar_discrepancia(db, RegistroBanco(date(2024, 3, 1), "x", -10), "no-existe")
    assert not res.ok
    assert store.obtener_banco(db, banco.id).saldo_actual == 100000
    assert len(store.listar_no_conciliados(db)) == 2


def test_base_inaccesible_devuelve_error(tmp_path):
    """Si la base no se puede abrir, las acciones informan el error sin lanzar."""
    db = BaseDatosConfig(path=tmp_path / "no" / "existe" / "x.sqlite")
    res = conciliar_uno(db, "abc")
    assert not res.ok and res.error
    res = materializar_discrepancia(db, RegistroBanco(date(2024, 3, 1), "x", -10), "b")
    assert not res.ok and res.error
    resultados = conciliar(
        [RegistroBanco(date(2024, 3, 1), "", -1)],
        [MovimientoFinanciero(id="m", tipo="Egreso", monto=1, fecha=date(2024, 3, 1))],
    )
    assert not conciliar_coincidencias(db, resultados).ok


def test_materializar_discrepancia_revierte_si_falla_el_movimiento(tmp_path, monkeypatch):
    """Gasto y descuento de saldo se deshacen si el alta del movimiento falla."""
    db, banco, *_ = _preparar(tmp_path)

    def _falla(conn, nuevo):
        raise sqlite3.IntegrityError("movimiento rechazado")

    monkeypatch.setattr(store, "_insertar_movimiento", _falla)
    res = materializar_discrepancia(db, RegistroBanco(date(2024, 3, 1), "Comisión", -2000), banco.id)

    assert not res.ok
    assert "rechazado" in res.error
    assert store.obtener_banco(db, banco.id).saldo_actual == 100000
    with store.transaccion(db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM gastos;").fetchone()[0] == 0


def test_materializar_discrepancia_revierte_si_falla_el_saldo(tmp_path, monkeypatch):
    db, banco, *_ = _preparar(tmp_path)

    def _falla(conn, banco_id, delta):
        raise store.StoreError("saldo bloqueado")

    monkeypatch.setattr(store, "_sumar_saldo", _falla)
    res = materializar_discrepancia(db, RegistroBanco(date(2024, 3, 1), "x", -500), banco.id)

    assert not res.ok
    assert store.obtener_banco(db, banco.id).saldo_actual == 100000
    with store.transaccion(db) as conn:
        assert conn.execute("SELECT COUNT(*) FROM gastos;").fetchone()[0] == 0
    assert len(store.listar_no_conciliados(db, banco.id)) == 2
