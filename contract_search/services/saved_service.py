import logging
from typing import Any

from fastapi import HTTPException
from postgrest.exceptions import APIError

from ..core.config import Config
from ..schemas.contracts import SavedContractEntry
from .contract_service import map_contract_row
from .supabase_service import get_client
from .usage_service import is_pro


logger = logging.getLogger(__name__)

TABLE = 'saved_contracts'
UNIQUE_VIOLATION = '23505'
JOIN_SELECT = 'id, saved_at, contracts:contract_id(*)'


def ensure_can_save(profile: dict[str, Any]) -> None:
    if Config.SAVED_CONTRACTS_PRO_ONLY and not is_pro(profile):
        raise HTTPException(status_code=403, detail="Saving contracts requires a Pro subscription")


def save_contract(user_id: str, contract_id: str) -> bool:
    """Bookmark a contract. Returns False when it was already saved."""
    try:
        get_client().table(TABLE).insert({
            'user_id': user_id,
            'contract_id': contract_id,
        }).execute()
        return True
    except APIError as e:
        if e.code == UNIQUE_VIOLATION:
            return False
        logger.error(f"Failed to save contract {contract_id} for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to save contract")
    except Exception as e:
        logger.error(f"Failed to save contract {contract_id} for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to save contract")


def remove_saved_contract(user_id: str, contract_id: str) -> bool:
    try:
        result = (
            get_client()
            .table(TABLE)
            .delete()
            .eq('user_id', user_id)
            .eq('contract_id', contract_id)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to remove saved contract {contract_id} for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to remove saved contract")
    return bool(result.data)


def _entry(row_id: Any, saved_at: Any, contract_row: Any) -> SavedContractEntry:
    return SavedContractEntry(
        id=str(row_id),
        saved_at=saved_at,
        contract=map_contract_row(contract_row) if isinstance(contract_row, dict) else None,
    )


def _get_saved_contracts_joined(user_id: str) -> list[SavedContractEntry]:
    result = (
        get_client()
        .table(TABLE)
        .select(JOIN_SELECT)
        .eq('user_id', user_id)
        .order('saved_at', desc=True)
        .execute()
    )
    return [_entry(row['id'], row.get('saved_at'), row.get('contracts')) for row in result.data or []]


def _get_saved_contracts_two_step(user_id: str) -> list[SavedContractEntry]:
    client = get_client()
    saved = (
        client
        .table(TABLE)
        .select('id, contract_id, saved_at')
        .eq('user_id', user_id)
        .order('saved_at', desc=True)
        .execute()
    ).data or []
    if not saved:
        return []

    contract_ids = [row['contract_id'] for row in saved]
    contracts = client.table('contracts').select('*').in_('id', contract_ids).execute().data or []
    by_id = {str(row['id']): row for row in contracts}
    return [_entry(row['id'], row.get('saved_at'), by_id.get(str(row['contract_id']))) for row in saved]


def get_saved_contracts(user_id: str) -> list[SavedContractEntry]:
    try:
        return _get_saved_contracts_joined(user_id)
    except APIError as e:
        # Embedding needs the saved_contracts -> contracts foreign key
        logger.warning(f"Saved contracts join failed, falling back to two queries: {e.message}")
    except Exception as e:
        logger.error(f"Failed to fetch saved contracts for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch saved contracts")

    try:
        return _get_saved_contracts_two_step(user_id)
    except Exception as e:
        logger.error(f"Failed to fetch saved contracts for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch saved contracts")


def is_contract_saved(user_id: str, contract_id: str) -> bool:
    return contract_id in saved_contract_ids(user_id, [contract_id])


def saved_contract_ids(user_id: str, contract_ids: list[str]) -> list[str]:
    if not contract_ids:
        return []
    try:
        result = (
            get_client()
            .table(TABLE)
            .select('contract_id')
            .eq('user_id', user_id)
            .in_('contract_id', contract_ids)
            .execute()
        )
    except Exception as e:
        logger.error(f"Failed to check saved contracts for {user_id}: {e}")
        raise HTTPException(status_code=502, detail="Failed to check saved contracts")
    saved = {str(row['contract_id']) for row in result.data or []}
    return [cid for cid in contract_ids if cid in saved]
