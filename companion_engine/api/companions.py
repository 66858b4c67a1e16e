"""Player and companion API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from companion_engine.api.schemas import (
    AbilityInfo,
    ActionResponse,
    BondInfo,
    BuyCompanionRequest,
    CompanionInfo,
    CreateCompanionRequest,
    ErrorResponse,
    PaymentRequest,
    PlayerInfo,
    QuestTemplateInfo,
    RegisterRequest,
    RenameRequest,
    ShopPetInfo,
    StartQuestRequest,
    ability_info,
    companion_info,
    quest_info,
    quest_template_info,
    shop_pet_info,
)
from companion_engine.config import settings
from companion_engine.core.companion.abilities import ABILITY_CATALOG
from companion_engine.core.companion.errors import CompanionNotFoundError
from companion_engine.core.companion.quests import QUEST_TEMPLATES
from companion_engine.core.companion.shop import PET_SHOP
from companion_engine.core.event_bus import EventBus
from companion_engine.core.logging import get_logger
from companion_engine.db.database import get_db
from companion_engine.db.models import PlayerModel
from companion_engine.services.companion_service import ActionResult, CompanionService
from companion_engine.services.ledger import register_player

logger = get_logger(__name__)

router = APIRouter(tags=["companions"])

# Rejections that mean "already done" rather than "cannot do"
CONFLICT_REASONS = frozenset({"already_unlocked", "quest_already_resolved"})

NOT_FOUND = {404: {"model": ErrorResponse}}
REJECTED = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def get_event_bus(request: Request) -> EventBus:
    """EventBus instance (dependency injection)"""
    bus: EventBus | None = getattr(request.app.state, "event_bus", None)
    if bus is None:
        raise RuntimeError("EventBus not initialized")
    return bus


def get_companion_service(
    player_id: str,
    db: Session = Depends(get_db),
    event_bus: EventBus = Depends(get_event_bus),
) -> CompanionService:
    """Per-request CompanionService scoped to one player"""
    if db.get(PlayerModel, player_id) is None:
        raise HTTPException(status_code=404, detail=f"Player not found: {player_id}")
    return CompanionService.for_player(db, player_id, event_bus)


def _action_response(
    service: CompanionService, result: ActionResult
) -> ActionResponse:
    """Map an ActionResult to a response, raising for rejected actions."""
    if not result.success:
        status = 409 if result.reason in CONFLICT_REASONS else 400
        raise HTTPException(status_code=status, detail=result.reason)
    return ActionResponse(
        success=True,
        companion=companion_info(result.companion),
        quest=quest_info(result.quest) if result.quest else None,
        gems=service.ledger.get_currency_balance(),
        player_experience=service.ledger.get_player_experience(),
    )


def _not_found(e: Exception) -> HTTPException:
    return HTTPException(status_code=404, detail=str(e))


# === Players ===


@router.post("/players/register", response_model=PlayerInfo)
def register(request: RegisterRequest, db: Session = Depends(get_db)) -> PlayerInfo:
    """
    Register a player

    Creates the ledger row with the starting balances. Registering an
    existing player returns it unchanged.
    """
    player = register_player(
        db,
        request.player_id,
        gems=settings.STARTING_GEMS,
        experience=settings.STARTING_PLAYER_XP,
    )
    return PlayerInfo(
        player_id=player.player_id,
        gems=player.gems,
        experience=player.experience,
        current_companion_id=player.current_companion_id,
    )


@router.get("/players/{player_id}", response_model=PlayerInfo, responses=NOT_FOUND)
def get_player(player_id: str, db: Session = Depends(get_db)) -> PlayerInfo:
    player = db.get(PlayerModel, player_id)
    if player is None:
        raise HTTPException(status_code=404, detail=f"Player not found: {player_id}")
    return PlayerInfo(
        player_id=player.player_id,
        gems=player.gems,
        experience=player.experience,
        current_companion_id=player.current_companion_id,
    )


# === Companions ===


@router.get(
    "/players/{player_id}/companions",
    response_model=list[CompanionInfo],
    responses=NOT_FOUND,
)
def list_companions(
    service: CompanionService = Depends(get_companion_service),
) -> list[CompanionInfo]:
    return [companion_info(c) for c in service.list_companions()]


@router.post(
    "/players/{player_id}/companions",
    response_model=CompanionInfo,
    responses=NOT_FOUND,
)
def create_companion(
    request: CreateCompanionRequest,
    service: CompanionService = Depends(get_companion_service),
) -> CompanionInfo:
    """Hatch a new egg. It becomes the current companion."""
    return companion_info(service.create_companion(request.name))


@router.get(
    "/players/{player_id}/companions/current",
    response_model=CompanionInfo,
    responses=NOT_FOUND,
)
def get_current_companion(
    service: CompanionService = Depends(get_companion_service),
) -> CompanionInfo:
    companion = service.get_current_companion()
    if companion is None:
        raise HTTPException(status_code=404, detail="No current companion")
    return companion_info(companion)


@router.get(
    "/players/{player_id}/companions/{companion_id}",
    response_model=CompanionInfo,
    responses=NOT_FOUND,
)
def get_companion(
    companion_id: str,
    service: CompanionService = Depends(get_companion_service),
) -> CompanionInfo:
    """Companion with passive decay applied up to now."""
    try:
        return companion_info(service.get_companion(companion_id))
    except CompanionNotFoundError as e:
        raise _not_found(e)


@router.post(
    "/players/{player_id}/companions/{companion_id}/current",
    response_model=CompanionInfo,
    responses=NOT_FOUND,
)
def set_current_companion(
    companion_id: str,
    service: CompanionService = Depends(get_companion_service),
) -> CompanionInfo:
    try:
        service.set_current_companion(companion_id)
        return companion_info(service.get_companion(companion_id))
    except CompanionNotFoundError as e:
        raise _not_found(e)


# === Care ===


@router.post(
    "/players/{player_id}/companions/{companion_id}/feed",
    response_model=ActionResponse,
    responses=REJECTED,
)
def feed(
    companion_id: str,
    request: PaymentRequest | None = None,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    method = (request or PaymentRequest()).method
    try:
        result = service.feed(companion_id, method=method)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    return _action_response(service, result)


@router.post(
    "/players/{player_id}/companions/{companion_id}/play",
    response_model=ActionResponse,
    responses=REJECTED,
)
def play(
    companion_id: str,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    try:
        result = service.play(companion_id)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    return _action_response(service, result)


@router.post(
    "/players/{player_id}/companions/{companion_id}/heal",
    response_model=ActionResponse,
    responses=REJECTED,
)
def heal(
    companion_id: str,
    request: PaymentRequest | None = None,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    method = (request or PaymentRequest()).method
    try:
        result = service.heal(companion_id, method=method)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    return _action_response(service, result)


@router.post(
    "/players/{player_id}/companions/{companion_id}/clean",
    response_model=ActionResponse,
    responses=REJECTED,
)
def clean(
    companion_id: str,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    try:
        result = service.clean(companion_id)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    return _action_response(service, result)


@router.post(
    "/players/{player_id}/companions/{companion_id}/rename",
    response_model=ActionResponse,
    responses=REJECTED,
)
def rename(
    companion_id: str,
    request: RenameRequest,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    try:
        result = service.rename(companion_id, request.name)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    return _action_response(service, result)


# === Abilities & bond ===


@router.get(
    "/players/{player_id}/companions/{companion_id}/abilities",
    response_model=list[AbilityInfo],
    responses=NOT_FOUND,
)
def list_abilities(
    companion_id: str,
    unlockable_only: bool = False,
    service: CompanionService = Depends(get_companion_service),
) -> list[AbilityInfo]:
    """Ability catalog with unlock flags, or only what can be unlocked now."""
    try:
        if unlockable_only:
            return [
                ability_info(a)
                for a in service.list_unlockable_abilities(companion_id)
            ]
        companion = service.get_companion(companion_id)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    return [
        ability_info(a, unlocked=a.ability_id in companion.unlocked_abilities)
        for a in ABILITY_CATALOG.values()
    ]


@router.post(
    "/players/{player_id}/companions/{companion_id}/abilities/{ability_id}/unlock",
    response_model=ActionResponse,
    responses=REJECTED,
)
def unlock_ability(
    companion_id: str,
    ability_id: str,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    try:
        result = service.unlock_ability(companion_id, ability_id)
    except (CompanionNotFoundError, ValueError) as e:
        raise _not_found(e)
    return _action_response(service, result)


@router.get(
    "/players/{player_id}/companions/{companion_id}/bond",
    response_model=BondInfo,
    responses=NOT_FOUND,
)
def get_bond(
    companion_id: str,
    service: CompanionService = Depends(get_companion_service),
) -> BondInfo:
    try:
        status = service.bond_status(companion_id)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    return BondInfo(
        bond_level=status.bond_level,
        milestone=status.milestone.name,
        feature=status.milestone.feature,
        emoji=status.milestone.emoji,
        current_threshold=status.progress.current_threshold,
        next_threshold=status.progress.next_threshold,
        percent=status.progress.percent,
        message=status.message,
        next_milestone=status.next_milestone.name if status.next_milestone else None,
        unlocked_features=status.unlocked_features,
    )


# === Quests ===


@router.get("/quests/templates", response_model=list[QuestTemplateInfo])
def list_quest_templates() -> list[QuestTemplateInfo]:
    return [quest_template_info(t) for t in QUEST_TEMPLATES.values()]


@router.post(
    "/players/{player_id}/companions/{companion_id}/quests",
    response_model=ActionResponse,
    responses=REJECTED,
)
def start_quest(
    companion_id: str,
    request: StartQuestRequest,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    try:
        result = service.start_quest(companion_id, request.template_id)
    except (CompanionNotFoundError, ValueError) as e:
        raise _not_found(e)
    return _action_response(service, result)


@router.post(
    "/players/{player_id}/companions/{companion_id}/quests/{instance_id}/claim",
    response_model=ActionResponse,
    responses=REJECTED,
)
def claim_quest(
    companion_id: str,
    instance_id: str,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    """Resolve a finished quest. The quest status tells completed from failed."""
    try:
        result = service.claim_quest(companion_id, instance_id)
    except CompanionNotFoundError as e:
        raise _not_found(e)
    if result.reason == "quest_not_found":
        raise HTTPException(status_code=404, detail=result.reason)
    return _action_response(service, result)


# === Shop ===


@router.get("/shop", response_model=list[ShopPetInfo])
def list_shop() -> list[ShopPetInfo]:
    return [shop_pet_info(p) for p in PET_SHOP.values()]


@router.post(
    "/players/{player_id}/shop/{shop_id}",
    response_model=ActionResponse,
    responses=REJECTED,
)
def buy_companion(
    shop_id: str,
    request: BuyCompanionRequest | None = None,
    service: CompanionService = Depends(get_companion_service),
) -> ActionResponse:
    """Buy a companion at its preset level with player XP."""
    name = request.name if request else None
    try:
        result = service.buy_companion(shop_id, name=name)
    except ValueError as e:
        raise _not_found(e)
    logger.info("Shop purchase %s: success=%s", shop_id, result.success)
    return _action_response(service, result)
