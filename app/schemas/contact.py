from pydantic import BaseModel, EmailStr, Field


class LeadCreate(BaseModel):
    """Contact form submission."""
    name: str = Field(..., min_length=1, alias="nome")
    email: EmailStr
    message: str = Field(..., min_length=1, alias="mensagem")

    class Config:
        populate_by_name = True
