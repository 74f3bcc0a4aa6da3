"""
Interfaz del almacenamiento clave/valor del cache local.
Define el contrato que debe cumplir cualquier implementación.
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple


# (revision, writer_id) de una clave
Revision = Tuple[int, str]


class IStorage(ABC):
    """
    Interfaz del almacenamiento local.

    Equivale a un localStorage compartido entre procesos: claves string,
    valores string (JSON serializado por el caller). Cada escritura
    incrementa la revision de la clave y registra el writer_id del proceso
    que escribio, lo que permite detectar cambios hechos por otro proceso.
    """

    @property
    @abstractmethod
    def writer_id(self) -> str:
        """Identificador de este proceso como escritor."""
        pass

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """
        Obtiene el valor de una clave.

        Args:
            key: Clave a leer

        Returns:
            Optional[str]: Valor almacenado o None si no existe

        Raises:
            LocalStorageError: Si el backend no puede leer
        """
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """
        Crea o sobreescribe el valor de una clave.

        Args:
            key: Clave a escribir
            value: Valor serializado

        Raises:
            StorageQuotaExceededError: Si el valor supera la cuota
            LocalStorageError: Si el backend no puede escribir
        """
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Elimina una clave (no falla si no existe)."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """Lista todas las claves almacenadas."""
        pass

    @abstractmethod
    def revisions(self, keys: Iterable[str]) -> Dict[str, Revision]:
        """
        Obtiene la revision actual de las claves indicadas.

        Args:
            keys: Claves a consultar

        Returns:
            Dict[str, Revision]: Solo las claves existentes
        """
        pass
