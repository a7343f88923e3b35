import html
from datetime import date
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

GMAIL_DOMAINS = {"gmail.com", "googlemail.com"}
PLUS_TAG_DOMAINS = {
    "hotmail.com", "hotmail.co.uk", "hotmail.fr", "outlook.com", "outlook.com.br",
    "live.com", "live.co.uk", "msn.com", "passport.com",
    "icloud.com", "me.com",
}
DASH_TAG_DOMAINS = {"yahoo.com", "yahoo.com.br", "yahoo.co.uk", "yahoo.fr", "ymail.com", "rocketmail.com"}


def escape(value: str) -> str:
    # Codifica & < > " ' ; barras e crases ficam como vieram
    return html.escape(value.strip(), quote=True)


def normalize_email(email: str) -> str:
    """Forma canônica do e-mail: minúsculas e sem apelidos (+tag, pontos no Gmail)."""
    local, _, domain = email.lower().rpartition("@")
    if domain in GMAIL_DOMAINS:
        local = local.split("+", 1)[0].replace(".", "")
        domain = "gmail.com"
    elif domain in PLUS_TAG_DOMAINS:
        local = local.split("+", 1)[0]
    elif domain in DASH_TAG_DOMAINS:
        local = local.split("-", 1)[0]
    return f"{local}@{domain}"


# --- SCHEMAS DE ATENDIMENTO ---

class AtendimentoBase(BaseModel):
    # JSON em camelCase (serviceDescription); snake_case também é aceito na entrada
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    email: str
    phone: Optional[str] = None
    service_description: str
    service_date: Optional[date] = None


# O que precisamos receber para CRIAR (Input)
class AtendimentoCreate(AtendimentoBase):
    model_config = ConfigDict(validate_default=True)

    # Campos ausentes viram "" e falham com a mensagem do próprio campo
    name: str = ""
    email: str = ""
    service_description: str = ""

    @field_validator("name")
    @classmethod
    def validar_nome(cls, v: str) -> str:
        if len(v.strip()) < 3:
            raise ValueError("Nome deve ter pelo menos 3 caracteres")
        return escape(v)

    @field_validator("email")
    @classmethod
    def validar_email(cls, v: str) -> str:
        try:
            resultado = validate_email(v.strip(), check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("E-mail inválido")
        return normalize_email(resultado.normalized)

    @field_validator("service_description")
    @classmethod
    def validar_descricao(cls, v: str) -> str:
        if len(v.strip()) < 5:
            raise ValueError("Descrição deve ter pelo menos 5 caracteres")
        return escape(v)

    @field_validator("phone")
    @classmethod
    def limpar_telefone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return escape(v)

    @field_validator("service_date", mode="before")
    @classmethod
    def data_vazia(cls, v):
        # O formulário manda "" quando a data não é preenchida
        if isinstance(v, str) and not v.strip():
            return None
        return v


# O que a API DEVOLVE (inclui ID e a data efetiva)
class AtendimentoResponse(AtendimentoBase):
    id: int
    service_date: date

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErroCampo(BaseModel):
    field: str
    msg: str


class ErrosValidacao(BaseModel):
    errors: list[ErroCampo]
