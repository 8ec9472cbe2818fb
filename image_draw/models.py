from sqlalchemy import Boolean, Column, Integer, String, Text

from image_draw.database import Base


class Image(Base):
    __tablename__ = "images"
    # ids are never reused, even after the highest one is deleted
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    data = Column(Text, nullable=False)  # base64 data URI
    selected = Column(Boolean, nullable=False, default=False)
    selected_count = Column(Integer, nullable=False, default=0)
    group_id = Column(Integer, nullable=False, default=0)
    timestamp = Column(String(32), nullable=False)

    def __repr__(self):
        return f"<Image(id={self.id}, name='{self.name}', selected_count={self.selected_count})>"
