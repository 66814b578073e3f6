from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from core.database import Base
from core.identifiers import new_id, utcnow

class Category(Base):
    __tablename__ = "category"

    id = Column(String(255), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relaciones (la categoría NO es dueña de sus productos: ON DELETE SET NULL)
    products = relationship("Product", back_populates="category", passive_deletes=True)

    def __repr__(self):
        return f"<Category(id={self.id}, slug={self.slug})>"


class Product(Base):
    __tablename__ = "products"

    id = Column(String(255), primary_key=True, default=new_id)
    code = Column(String(32), unique=True, nullable=False, index=True)  # Código visible (PROD-0934)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    unit = Column(Integer, nullable=False)
    category_id = Column(String(255), ForeignKey("category.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Relaciones
    category = relationship("Category", back_populates="products")
    images = relationship("ProductImage", back_populates="product", cascade="all, delete-orphan", passive_deletes=True)
    order_items = relationship("OrderItem", back_populates="product", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Product(id={self.id}, slug={self.slug})>"


class ProductImage(Base):
    __tablename__ = "product_images"

    id = Column(String(255), primary_key=True, default=new_id)
    product_id = Column(String(255), ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    image_url = Column(String(512), nullable=False)
    public_id = Column(String(255), nullable=False)  # Identificador en el storage (para borrar)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    product = relationship("Product", back_populates="images")
