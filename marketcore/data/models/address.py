from sqlalchemy import BigInteger, Column, String

from marketcore.data.database import Base, IdType


class AddressModel(Base):
    __tablename__ = "user_addresses"

    id = Column(IdType, primary_key=True)
    user_id = Column(BigInteger, nullable=False, index=True)

    recipient = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=False)
    postcode = Column(String(10), nullable=False)
    address1 = Column(String(255), nullable=False)
    address2 = Column(String(255), nullable=True)
