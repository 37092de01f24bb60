from datetime import date

from cli import main
from infra import store
from infra.config import BaseDatosConfig


def _crear_banco(db_path, capsys):
    assert main(["--db", str(db_path), "banco-nuevo", "Banco Ciudad", "--saldo", "100000"]) == 0
    return capsys.readouterr().out.strip()


def test_cli_conciliar_y_aplicar(tmp_path, capsys):
    db_path = tmp_path / "cli.sqlite"
    banco_id = _crear_banco(db_path, capsys)
    assert main(["--db", str(db_path), "movimiento-nuevo", banco_id, "Egreso", "50000", "2024-03-02",
                 "--descripcion", "Proveedor"]) == 0
    capsys.readouterr()

    extracto = tmp_path / "extracto.csv"
    extracto.write_text("Fecha,Descripción,Monto\n2024-03-01,Pago,-50000\n2024-03-01,Comisión,-200\n",
                        encoding="utf-8")
    xlsx = tmp_path / "out.xlsx"

    code = main(["--db", str(db_path), "conciliar", banco_id, str(extracto), "--aplicar", "--excel", str(xlsx)])
    out = capsys.readouterr().out
    assert code == 0
    assert "Coincidencias (1)" in out
    assert "Discrepancias: en Banco pero no en Sistema (1)" in out
    assert "Conciliados 1 movimientos" in out
    assert xlsx.exists()
    assert store.listar_no_conciliados(BaseDatosConfig(path=db_path), banco_id) == []


def test_cli_gasto_discrepancia(tmp_path, capsys):
    db_path = tmp_path / "cli.sqlite"
    banco_id = _crear_banco(db_path, capsys)
    assert main(["--db", str(db_path), "gasto-discrepancia", banco_id, "2024-03-01", "-2000",
                 "--descripcion", "Comisión"]) == 0
    assert store.obtener_banco(BaseDatosConfig(path=db_path), banco_id).saldo_actual == 98000


def test_cli_errores(tmp_path, capsys):
    db_path = tmp_path / "cli.sqlite"
    assert main(["--db", str(db_path), "conciliar-uno", "no-existe"]) == 1
    assert "Error" in capsys.readouterr().err
    assert main(["--db", str(db_path), "conciliar", "no-existe", str(tmp_path / "x.csv")]) == 2


def test_cli_usa_formatos_de_fecha_del_config(tmp_path, capsys):
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(
        'app:\n  title: "t"\nlectura:\n  fecha_formatos: ["%m/%d/%Y"]\n',
        encoding="utf-8",
    )
    db_path = tmp_path / "cli.sqlite"
    base = ["--config", str(cfg_path), "--db", str(db_path)]
    assert main(base + ["banco-nuevo", "Banco Ciudad"]) == 0
    banco_id = capsys.readouterr().out.strip()
    assert main(base + ["movimiento-nuevo", banco_id, "Egreso", "10", "05/03/2024"]) == 0
    capsys.readouterr()
    assert store.listar_no_conciliados(BaseDatosConfig(path=db_path), banco_id)[0].fecha == date(2024, 5, 3)

    extracto = tmp_path / "extracto.csv"
    extracto.write_text("Fecha,Descripción,Monto\n05/03/2024,x,-10\n", encoding="utf-8")
    assert main(base + ["conciliar", banco_id, str(extracto)]) == 0
    out = capsys.readouterr().out
    assert "Coincidencias (1)" in out
    assert "Discrepancias: en Banco pero no en Sistema (0)" in out
