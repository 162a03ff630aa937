"""
Persona pool and subject rotation
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from roast_studio.core.config import settings
from roast_studio.models import Persona
from roast_studio.schemas.persona_schemas import PersonaCreate, PersonaResponse
from roast_studio.services.round_store import RoundStore

logger = logging.getLogger(__name__)


def choose_next_persona(
    personas: List[Persona],
    current_subject: Optional[str],
    recent_subjects: List[str],
) -> Optional[Persona]:
    """Pick the next subject

    Walk the pool alphabetically starting after the current subject and take
    the first one that was not roasted recently; if every persona was, fall
    back to the next one alphabetically after the current subject.
    """
    if not personas:
        return None

    ordered = sorted(personas, key=lambda p: p.username.lower())
    start = 0
    if current_subject:
        current = current_subject.lower()
        start = next(
            (i for i, p in enumerate(ordered) if p.username.lower() > current),
            0,
        )

    rotation = ordered[start:] + ordered[:start]
    recent = {name.lower() for name in recent_subjects}
    for persona in rotation:
        if persona.username.lower() not in recent:
            return persona
    return rotation[0]


class PersonaService:
    """Persona management"""

    def __init__(self, db: Session):
        self.db = db
        self.store = RoundStore(db)

    async def create_persona(self, persona_data: PersonaCreate) -> PersonaResponse:
        """Add a persona to the pool"""
        persona = Persona(
            username=persona_data.username,
            twitter_handle=persona_data.twitter_handle,
            profile_pic_url=persona_data.profile_pic_url,
        )
        self.db.add(persona)
        self.db.commit()
        self.db.refresh(persona)
        logger.info("Added persona %s", persona.username)
        return PersonaResponse.model_validate(persona)

    async def get_personas(self) -> List[PersonaResponse]:
        """List the pool alphabetically"""
        return [PersonaResponse.model_validate(p) for p in self._sorted_personas()]

    def _sorted_personas(self) -> List[Persona]:
        personas = self.db.query(Persona).all()
        return sorted(personas, key=lambda p: p.username.lower())

    def pick_next(self, current_subject: Optional[str]) -> Optional[Persona]:
        """Next subject after current_subject, avoiding recently archived ones"""
        recent = self.store.recent_archived_subjects(settings.RECENT_SUBJECT_WINDOW)
        return choose_next_persona(self._sorted_personas(), current_subject, recent)
