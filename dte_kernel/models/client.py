"""
Module: dte_kernel.models.client
Responsibility: Client reference rows resolved when a document is issued.
Architecture position: Kernel > Models.  May import from db/ only.
"""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from dte_kernel.db.base import Base


class Client(Base):
    """Buyer of a document.  ``document_number`` holds the NIT or DUI."""

    __tablename__ = "clients"

    __table_args__ = (Index("idx_client_name", "name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    document_number: Mapped[str | None] = mapped_column(String(30), nullable=True)

    email: Mapped[str | None] = mapped_column(String(200), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Client {self.name}>"
