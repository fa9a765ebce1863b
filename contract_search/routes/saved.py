import logging

from fastapi import APIRouter, Depends

from ..core.validation import validate_contract_id
from ..schemas.contracts import SavedContractEntry
from ..services import contract_service, saved_service
from ..services.auth_service import AuthUser
from ..services.supabase_service import require_user_profile
from .deps import get_current_user


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/saved", tags=["saved"])


@router.get("", response_model=list[SavedContractEntry])
def list_saved(user: AuthUser = Depends(get_current_user)):
    return saved_service.get_saved_contracts(user.id)


@router.get("/{contract_id}")
def saved_status(contract_id: str, user: AuthUser = Depends(get_current_user)):
    validate_contract_id(contract_id)
    return {"contract_id": contract_id, "saved": saved_service.is_contract_saved(user.id, contract_id)}


@router.post("/{contract_id}", status_code=201)
def save(contract_id: str, user: AuthUser = Depends(get_current_user)):
    validate_contract_id(contract_id)
    saved_service.ensure_can_save(require_user_profile(user.id))
    # 404 for unknown contracts rather than a foreign key error
    contract_service.get_contract_by_id(contract_id)
    created = saved_service.save_contract(user.id, contract_id)
    return {"contract_id": contract_id, "saved": True, "created": created}


@router.delete("/{contract_id}")
def remove(contract_id: str, user: AuthUser = Depends(get_current_user)):
    validate_contract_id(contract_id)
    removed = saved_service.remove_saved_contract(user.id, contract_id)
    return {"contract_id": contract_id, "saved": False, "removed": removed}
