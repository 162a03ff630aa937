"""
Persona API routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from roast_studio.core.database import get_db
from roast_studio.services.persona_service import PersonaService
from roast_studio.schemas.persona_schemas import PersonaCreate, PersonaResponse

router = APIRouter()

@router.get("", response_model=List[PersonaResponse])
async def list_personas(db: Session = Depends(get_db)):
    """List roast subjects"""
    return await PersonaService(db).get_personas()

@router.post("", response_model=PersonaResponse, status_code=201)
async def create_persona(
    persona_data: PersonaCreate,
    db: Session = Depends(get_db)
):
    """Add a roast subject"""
    return await PersonaService(db).create_persona(persona_data)
