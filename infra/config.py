from __future__ import annotations
import yaml
from dataclasses import dataclass, field
from pathlib import Path


_RAIZ = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class AppConfig:
    title: str
    fecha_vista_formato: str = "DD/MM/YYYY"
    log_level: str = "INFO"


@dataclass(frozen=True)
class ConciliacionConfig:
    tolerancia_dias_default: int = 3
    tolerancia_importe_default: float = 0.01
    categoria_gasto_default: str = "Otros"


@dataclass(frozen=True)
class LecturaConfig:
    csv_encodings: list[str] = field(default_factory=lambda: ["utf-8-sig", "utf-8", "cp1252", "latin1"])
    csv_separadores: list[str] = field(default_factory=lambda: [",", ";", "\t"])
    fecha_formatos: list[str] = field(default_factory=lambda: ["%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y"])


@dataclass(frozen=True)
class BaseDatosConfig:
    path: Path


@dataclass(frozen=True)
class Config:
    app: AppConfig
    conciliacion: ConciliacionConfig
    lectura: LecturaConfig
    base_datos: BaseDatosConfig


def _resolver(path: str | Path) -> Path:
    """Busca el archivo en el directorio actual y, si no existe, en la raíz del proyecto."""
    p = Path(path)
    if p.is_absolute() or p.exists():
        return p
    return _RAIZ / p


def load_config(path: str | Path = "config.yaml") -> Config:
    with open(_resolver(path), "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    app = AppConfig(**data["app"])
    conc = ConciliacionConfig(**data.get("conciliacion", {}))
    lec = LecturaConfig(**data.get("lectura", {}))
    db = data.get("base_datos", {})
    base = BaseDatosConfig(path=_resolver(db.get("path", "conciliacion.sqlite")))

    return Config(app=app, conciliacion=conc, lectura=lec, base_datos=base)
