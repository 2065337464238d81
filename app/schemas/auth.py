from pydantic import BaseModel, ConfigDict, EmailStr, Field

class UserCreate(BaseModel):
    user_fname: str = Field(..., min_length=1, max_length=100)
    user_lname: str = Field(..., min_length=1, max_length=100)
    user_email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)

class UserLogin(BaseModel):
    user_email: EmailStr
    password: str

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    fname: str
    lname: str
    email: str
    role: str

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class RoleUpdate(BaseModel):
    user_role: str = Field(..., pattern="^(borrower|librarian|admin)$")
