from datetime import date

import pytest

from logic.modelos import MovimientoFinanciero, RegistroBanco, ResultadoConciliacion


def test_monto_con_signo():
    assert MovimientoFinanciero("1", "Egreso", 50, date(2024, 3, 1)).monto_con_signo == -50
    assert MovimientoFinanciero("2", "Ingreso", 50, date(2024, 3, 1)).monto_con_signo == 50


def test_resultado_valida_presencia():
    r = RegistroBanco(date(2024, 3, 1), "", -1)
    m = MovimientoFinanciero("1", "Egreso", 1, date(2024, 3, 1))
    ResultadoConciliacion("coincidencia", r, m)
    ResultadoConciliacion("discrepancia", registro_banco=r)
    ResultadoConciliacion("faltante", movimiento=m)
    with pytest.raises(ValueError):
        ResultadoConciliacion("coincidencia", registro_banco=r)
    with pytest.raises(ValueError):
        ResultadoConciliacion("faltante", r, m)
    with pytest.raises(ValueError):
        ResultadoConciliacion("otro", r)
