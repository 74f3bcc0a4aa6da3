"""
Gestión del engine SQLAlchemy del cache local.

El cache es sincrono a proposito: equivale a localStorage y sus operaciones
son cortas; los unicos puntos de suspension del motor son las llamadas de red.
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


# Base para modelos de SQLAlchemy
Base = declarative_base()


def _create_engine_args(database_url: str, echo: bool = False) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    SQLite en memoria necesita una unica conexion compartida.
    """
    args = {
        "echo": echo,
        "future": True,
    }
    
    if database_url.startswith("sqlite"):
        args["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            args["poolclass"] = StaticPool
    else:
        args["pool_pre_ping"] = True  # Verifica conexion antes de usar
    
    return args


def create_cache_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Crea el engine del cache local y sus tablas si no existen.
    
    Args:
        database_url: URL SQLAlchemy (p.ej. sqlite:///mistral_cache.db)
        echo: Log de SQL
        
    Returns:
        Engine: Engine listo para usar
    """
    # Registrar modelos en Base.metadata antes de crear tablas
    from mistral_sync.infrastructure.database import models  # noqa: F401

    engine = create_engine(database_url, **_create_engine_args(database_url, echo))
    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory del cache local."""
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )
