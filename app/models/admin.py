from sqlalchemy import Column, String
from core.database import Base
from core.identifiers import new_id


class AdminPasscode(Base):
    """
    Códigos de acceso al panel de administración.
    El código se guarda hasheado con bcrypt, nunca en texto plano.
    """
    __tablename__ = "passcodes"

    id = Column(String(255), primary_key=True, default=new_id)
    passcode_hash = Column(String(255), nullable=False)
    owner = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<AdminPasscode(id={self.id}, owner={self.owner})>"
