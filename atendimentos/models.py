from sqlalchemy import Column, Date, Integer, String, Text, text

from atendimentos.database import Base


class Atendimento(Base):
    __tablename__ = "atendimentos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    service_description = Column(Text, nullable=False)
    # Entre parênteses para o MySQL aceitar a expressão como default
    service_date = Column(Date, server_default=text("(CURRENT_DATE)"))
