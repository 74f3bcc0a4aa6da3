"""
Modelos de base de datos (ORM) del cache local.
"""
from sqlalchemy import Column, String, Integer, DateTime, Text

from mistral_sync.infrastructure.database.session import Base


class CacheEntryModel(Base):
    """
    Entrada clave/valor del cache local.
    
    - value: JSON serializado (colecciones de registros o estado de sync)
    - revision: contador monotono por clave, incrementa en cada escritura
    - writer_id: proceso que hizo la ultima escritura
    """
    
    __tablename__ = "cache_entries"
    
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    revision = Column(Integer, nullable=False, default=0)
    writer_id = Column(String(64), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    
    def __repr__(self):
        return f"<CacheEntry(key={self.key}, revision={self.revision}, writer={self.writer_id})>"
