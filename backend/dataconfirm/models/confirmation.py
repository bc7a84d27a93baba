from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey
from datetime import datetime

from dataconfirm.core.database import Base
from dataconfirm.core.types import GUID


class Confirmation(Base):
    """One data element confirmed (or rejected) on the selection screen"""
    __tablename__ = "confirmations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    flow_type = Column(String(20), nullable=False, default="Inbound", index=True)
    agency = Column(String(255), nullable=True)
    system_name = Column(String(255), nullable=False, index=True)
    module_name = Column(String(255), nullable=False)
    data_element = Column(String(255), nullable=False)
    group_name = Column(String(255), nullable=True)  # NULL means no group
    is_confirmed = Column(Boolean, default=True, nullable=False)
    remarks = Column(Text, nullable=True)
    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Confirmation {self.system_name}/{self.module_name}:{self.data_element}>"
