"""
Records the element confirmations made on the selection screen.

One ``confirmations`` row is written per element, all in one transaction.
The confirmed keys are echoed back so the client can pre-seed the
questionnaire grid with them.
"""

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dataconfirm.core.exceptions import PersistenceError, ValidationError
from dataconfirm.core.logging_config import logger
from dataconfirm.models import Confirmation
from dataconfirm.schemas.confirmation import ConfirmationCreate, ConfirmationResult, ConfirmedKey
from dataconfirm.services.element_keys import find_duplicate_names, make_key


class ConfirmationService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self, data: ConfirmationCreate, created_by: Optional[str] = None
    ) -> ConfirmationResult:
        system = (data.system or "").strip()
        module = (data.module or "").strip()
        if not system or not module:
            raise ValidationError("System and module are required", field="system" if not system else "module")
        if not data.elements:
            raise ValidationError("Select at least one data element", field="elements")

        keys = []
        seen = set()
        for element in data.elements:
            if not element.name:
                raise ValidationError("Data element name cannot be blank", field="elements")
            key = make_key(element.name, element.group)
            if key in seen:
                continue
            seen.add(key)
            keys.append((key, element.confirmed))

        try:
            for key, confirmed in keys:
                self.db.add(Confirmation(
                    flow_type=data.flow_type,
                    agency=data.agency,
                    system_name=system,
                    module_name=module,
                    data_element=key.name,
                    group_name=key.group,
                    is_confirmed=confirmed,
                    remarks=data.remarks,
                    created_by=created_by,
                ))
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.log_error_with_context(e, "confirmation_record")
            raise PersistenceError("Failed to save confirmation")

        confirmed_keys = [key for key, confirmed in keys if confirmed]
        logger.info(
            f"[Confirmation] {data.flow_type} {system}/{module}: "
            f"{len(confirmed_keys)}/{len(keys)} elements confirmed"
        )

        return ConfirmationResult(
            message="Confirmation saved",
            count=len(keys),
            confirmed=[ConfirmedKey(name=k.name, group=k.group) for k in confirmed_keys],
            duplicate_names=find_duplicate_names(confirmed_keys),
        )
