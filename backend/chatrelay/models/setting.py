"""Setting model."""
from sqlalchemy import Column, Integer, Text

from chatrelay.database import Base


class Setting(Base):
    """Key/value pair changed at runtime, e.g. a provider API key."""

    __tablename__ = "settings"

    key = Column(Text, primary_key=True)  # e.g. "api_key_openai"
    value = Column(Text, nullable=False)
    updated_at = Column(Integer, nullable=False)  # epoch ms

    def __repr__(self):
        # Values may be secrets
        return f"<Setting {self.key}>"
