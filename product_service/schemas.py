# product_service/schemas.py

"""
Pydantic schemas for the Product Service API responses.
Request bodies are checked by `validation.py` so every failure is reported
in the service's own `{success, error}` shape.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Schema for representing a product in API responses.
class ProductResponse(BaseModel):
    id: str = Field(..., description="Unique identifier of the product.")
    product_name: str
    price_new: float
    brand: str
    category: str
    description: str = ""
    image_url: str = ""
    video_url: str = ""
    created_at: datetime = Field(..., description="Timestamp when the product was created.")
    updated_at: datetime = Field(..., description="Timestamp when the product was last updated.")

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    success: bool = True
    count: int
    data: List[ProductResponse]


class ProductDetailResponse(BaseModel):
    success: bool = True
    data: ProductResponse


class ProductCreatedResponse(BaseModel):
    success: bool = True
    message: str = "Product created successfully"
    productId: str
    data: ProductResponse


class ProductUpdatedResponse(BaseModel):
    success: bool = True
    message: str = "Product updated successfully"
    data: ProductResponse


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# Used in POST /upload responses.
class UploadResponse(BaseModel):
    success: bool = True
    message: str = "File uploaded successfully"
    fileName: str
    filePath: str = Field(..., description="Stored reference to save on a product.")
    fileUrl: str = Field(..., description="Absolute URL of the stored file.")
    fileType: str
    mimetype: str
    size: int
    publicId: str


class MediaDeleteResponse(MessageResponse):
    result: str


class StoredFile(BaseModel):
    name: str
    url: Optional[str] = None
    size: Optional[int] = None
    created: Optional[str] = None


class FileListResponse(BaseModel):
    success: bool = True
    count: int
    files: List[StoredFile]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
