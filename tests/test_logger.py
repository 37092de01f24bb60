import logging

from infra.logger import get_logger


def test_un_solo_handler_y_formato_sin_nombre():
    log = get_logger("conciliacion.prueba", "debug")
    assert get_logger("conciliacion.prueba") is log
    assert log.level == logging.DEBUG
    assert len(log.handlers) == 1
    assert log.handlers[0].formatter._fmt == "%(asctime)s | %(levelname)s | %(message)s"

    get_logger("conciliacion.prueba", "warning")
    assert log.level == logging.WARNING
    assert len(log.handlers) == 1
