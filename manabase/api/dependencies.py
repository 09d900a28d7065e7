from fastapi import Request

from manabase.services.card_service import CardService


def get_card_service(request: Request) -> CardService:
    """
    Dependency that provides the process-wide CardService.

    The service is created in the application lifespan and stored on
    app.state; tests override this dependency.
    """
    service: CardService = request.app.state.card_service
    return service
