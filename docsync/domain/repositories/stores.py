"""
Interfaces de los stores que participan del sync.
Definen el contrato que debe cumplir cualquier implementacion (drivers).
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Tuple


class DocumentStore(ABC):
    """
    Interfaz del document store (origen, fuente de verdad).
    """

    @abstractmethod
    def list_documents(
        self,
        collection: str,
        since: Optional[datetime] = None
    ) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """
        Itera los documentos de una coleccion.

        Args:
            collection: Nombre de la coleccion
            since: Si se indica, solo documentos modificados en o despues de esa fecha

        Returns:
            Iterator[Tuple[str, Dict[str, Any]]]: Pares (id, campos) en orden de origen
        """
        pass

    @abstractmethod
    def get_document(self, collection: str, document_id: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene un documento por su ID.

        Returns:
            Optional[Dict[str, Any]]: Campos del documento o None si no existe
        """
        pass


class RelationalStore(ABC):
    """
    Interfaz del relational store (destino).
    Cada escritura es independiente: no hay transaccion entre registros.
    """

    @abstractmethod
    def get_row(self, table: str, row_id: str) -> Optional[Dict[str, Any]]:
        """
        Obtiene una fila por su columna identidad.

        Returns:
            Optional[Dict[str, Any]]: Columnas de la fila o None si no existe
        """
        pass

    @abstractmethod
    def insert_row(self, table: str, columns: Dict[str, Any]) -> None:
        """Inserta una fila nueva (incluye la columna identidad)."""
        pass

    @abstractmethod
    def update_row(self, table: str, row_id: str, columns: Dict[str, Any]) -> None:
        """Actualiza las columnas indicadas de una fila existente."""
        pass
