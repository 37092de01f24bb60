"""
Línea de comandos de la conciliación bancaria.

Ejemplos
--------
    conciliacion banco-nuevo "Banco Ciudad" --saldo 150000
    conciliacion movimiento-nuevo <banco_id> Egreso 50000 2024-03-02 --descripcion "Proveedor"
    conciliacion conciliar <banco_id> extracto.csv --excel conciliacion.xlsx
    conciliacion conciliar <banco_id> extracto.csv --aplicar
    conciliacion gasto-discrepancia <banco_id> 2024-03-01 -20000 --descripcion "Comisión"
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from logic.acciones import conciliar_coincidencias, conciliar_uno, materializar_discrepancia
from logic.conciliacion import Parametros, agrupar, conciliar, resumen
from logic.lectura import cargar_extracto, parsear_fecha
from logic.modelos import NuevoMovimiento, RegistroBanco, ResultadoAccion
from infra import store
from infra.config import BaseDatosConfig, Config, load_config
from infra.export import resultados_a_excel_bytes
from infra.logger import get_logger


def _fmt_monto(x: float) -> str:
    return f"{x:,.2f}"


def _imprimir_resultados(resultados) -> None:
    grupos = agrupar(resultados)

    print(f"\nCoincidencias ({len(grupos['coincidencia'])})")
    for r in grupos["coincidencia"]:
        b, m = r.registro_banco, r.movimiento
        print(f"  {b.fecha}  {_fmt_monto(b.monto):>15}  {b.descripcion[:30]:<30} <-> {m.id}  {m.descripcion[:30]}")

    print(f"\nDiscrepancias: en Banco pero no en Sistema ({len(grupos['discrepancia'])})")
    for r in grupos["discrepancia"]:
        b = r.registro_banco
        print(f"  {b.fecha}  {_fmt_monto(b.monto):>15}  {b.descripcion}")

    print(f"\nFaltantes: en Sistema pero no en Banco ({len(grupos['faltante'])})")
    for r in grupos["faltante"]:
        m = r.movimiento
        print(f"  {m.fecha}  {_fmt_monto(m.monto_con_signo):>15}  {m.tipo:<7}  {m.id}  {m.descripcion}")


def _informar(resultado: ResultadoAccion, mensaje_ok: str) -> int:
    if resultado.ok:
        print(mensaje_ok.format(cantidad=resultado.cantidad))
        return 0
    print(f"Error: {resultado.error}", file=sys.stderr)
    return 1


def _cmd_bancos(db: BaseDatosConfig, args) -> int:
    for b in store.listar_bancos(db):
        print(f"{b.id}  {b.nombre:<30} {_fmt_monto(b.saldo_actual):>15}")
    return 0


def _cmd_banco_nuevo(db: BaseDatosConfig, args) -> int:
    banco = store.crear_banco(db, args.nombre, args.saldo)
    print(banco.id)
    return 0


def _cmd_movimiento_nuevo(db: BaseDatosConfig, args, cfg: Config) -> int:
    fecha = parsear_fecha(args.fecha, cfg.lectura.fecha_formatos)
    if fecha is None:
        print(f"Fecha inválida: {args.fecha}", file=sys.stderr)
        return 2
    mov = store.agregar_movimiento(db, NuevoMovimiento(
        tipo=args.tipo,
        monto=args.monto,
        fecha=fecha,
        descripcion=args.descripcion,
        banco_id=args.banco_id,
    ))
    print(mov.id)
    return 0


def _cmd_pendientes(db: BaseDatosConfig, args) -> int:
    for m in store.listar_no_conciliados(db, args.banco_id):
        print(f"{m.id}  {m.fecha}  {m.tipo:<7} {_fmt_monto(m.monto):>15}  {m.descripcion}")
    return 0


def _cmd_conciliar(db: BaseDatosConfig, args, cfg: Config) -> int:
    if store.obtener_banco(db, args.banco_id) is None:
        print(f"No existe el banco {args.banco_id}", file=sys.stderr)
        return 2

    registros = cargar_extracto(str(args.archivo), cfg.lectura)
    movimientos = store.listar_no_conciliados(db, args.banco_id)
    params = Parametros.desde_config(cfg)
    resultados = conciliar(registros, movimientos, params)

    _imprimir_resultados(resultados)
    print("\nResumen:", ", ".join(f"{k}={v}" for k, v in resumen(resultados).items()))

    if args.excel:
        Path(args.excel).write_bytes(
            resultados_a_excel_bytes(resultados, cfg.app.fecha_vista_formato)
        )
        print(f"Excel generado en {args.excel}")

    if args.aplicar:
        return _informar(conciliar_coincidencias(db, resultados), "Conciliados {cantidad} movimientos")
    return 0


def _cmd_conciliar_uno(db: BaseDatosConfig, args) -> int:
    return _informar(conciliar_uno(db, args.movimiento_id), "Movimiento conciliado")


def _cmd_gasto_discrepancia(db: BaseDatosConfig, args, cfg: Config) -> int:
    fecha = parsear_fecha(args.fecha, cfg.lectura.fecha_formatos)
    if fecha is None:
        print(f"Fecha inválida: {args.fecha}", file=sys.stderr)
        return 2
    registro = RegistroBanco(fecha=fecha, descripcion=args.descripcion, monto=args.monto)
    return _informar(
        materializar_discrepancia(
            db, registro, args.banco_id, categoria=cfg.conciliacion.categoria_gasto_default
        ),
        "Gasto registrado y saldo actualizado",
    )


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="conciliacion",
        description="Conciliación de extractos bancarios contra movimientos internos.",
    )
    ap.add_argument("--config", default="config.yaml", help="Ruta al config.yaml.")
    ap.add_argument("--db", default=None, help="Ruta a la base SQLite (pisa la del config).")

    sub = ap.add_subparsers(dest="comando", required=True)

    sub.add_parser("bancos", help="Lista las cuentas bancarias.")

    p = sub.add_parser("banco-nuevo", help="Crea una cuenta bancaria.")
    p.add_argument("nombre")
    p.add_argument("--saldo", type=float, default=0.0)

    p = sub.add_parser("movimiento-nuevo", help="Agrega un movimiento interno.")
    p.add_argument("banco_id")
    p.add_argument("tipo", choices=["Ingreso", "Egreso"])
    p.add_argument("monto", type=float)
    p.add_argument("fecha")
    p.add_argument("--descripcion", default="")

    p = sub.add_parser("pendientes", help="Lista movimientos no conciliados.")
    p.add_argument("banco_id", nargs="?", default=None)

    p = sub.add_parser("conciliar", help="Concilia un extracto CSV contra una cuenta.")
    p.add_argument("banco_id")
    p.add_argument("archivo", type=Path)
    p.add_argument("--aplicar", action="store_true", help="Marca como conciliadas las coincidencias.")
    p.add_argument("--excel", default=None, help="Exporta el resultado a este .xlsx.")

    p = sub.add_parser("conciliar-uno", help="Marca un movimiento como conciliado.")
    p.add_argument("movimiento_id")

    p = sub.add_parser("gasto-discrepancia", help="Registra una línea del extracto como gasto.")
    p.add_argument("banco_id")
    p.add_argument("fecha")
    p.add_argument("monto", type=float)
    p.add_argument("--descripcion", default="")

    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    cfg = load_config(args.config)
    get_logger(level=cfg.app.log_level)
    db = BaseDatosConfig(path=Path(args.db)) if args.db else cfg.base_datos

    try:
        if args.comando == "bancos":
            return _cmd_bancos(db, args)
        if args.comando == "banco-nuevo":
            return _cmd_banco_nuevo(db, args)
        if args.comando == "movimiento-nuevo":
            return _cmd_movimiento_nuevo(db, args, cfg)
        if args.comando == "pendientes":
            return _cmd_pendientes(db, args)
        if args.comando == "conciliar":
            return _cmd_conciliar(db, args, cfg)
        if args.comando == "conciliar-uno":
            return _cmd_conciliar_uno(db, args)
        if args.comando == "gasto-discrepancia":
            return _cmd_gasto_discrepancia(db, args, cfg)
    except (store.StoreError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
