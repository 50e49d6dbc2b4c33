"""
Pydantic models for API request/response.
"""

from typing import Dict, List, Optional, Union

from pydantic import BaseModel

from src.ai_layer.prompt_builder import exposure_label
from src.simulation_layer.models import SimulationResult, User


class SimulationSectionSchema(BaseModel):
    text: str
    factors: Optional[str] = None
    style: Optional[str] = None


class SimulationResultSchema(BaseModel):
    stimulus: SimulationSectionSchema
    knowledge: SimulationSectionSchema
    evaluation: SimulationSectionSchema
    behavior: str
    is_error: bool = False

    @classmethod
    def from_result(cls, result: SimulationResult) -> "SimulationResultSchema":
        return cls(**result.to_dict(), is_error=result.is_error)


class ProfileSchema(BaseModel):
    age: Union[int, str]
    gender: str
    occupation: Optional[str] = None
    location: Optional[str] = None
    traits: List[str] = []


class HistoryItemSchema(BaseModel):
    title: str
    year: str
    genre: str
    rating: str
    cover: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    pages: Optional[str] = None
    global_rating: Optional[str] = None
    my_behavior: Optional[str] = None


class ExposureItemSchema(BaseModel):
    label: str  # positional label used in prompts
    title: str
    year: str
    genre: str
    cover: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    pages: Optional[str] = None
    rating: Optional[str] = None


class UserSummary(BaseModel):
    id: str
    name: str
    avatar: str
    domain: str


class UserDetail(UserSummary):
    profile: ProfileSchema
    history: List[HistoryItemSchema]
    exposure_list: List[ExposureItemSchema]
    model_outputs: Dict[str, SimulationResultSchema] = {}
    ground_truth: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserDetail":
        data = user.to_dict()
        exposure = []
        for i, item in enumerate(data["exposure_list"]):
            item["label"] = exposure_label(i)
            exposure.append(item)
        return cls(
            id=user.id,
            name=user.name,
            avatar=user.avatar,
            domain=user.domain,
            profile=ProfileSchema(**data["profile"]),
            history=[HistoryItemSchema(**h) for h in data["history"]],
            exposure_list=[ExposureItemSchema(**e) for e in exposure],
            model_outputs={
                k: SimulationResultSchema.from_result(v) for k, v in user.model_outputs.items()
            },
            ground_truth=user.ground_truth,
        )


class PromptRequest(BaseModel):
    user_id: str


class PromptResponse(BaseModel):
    user_id: str
    prompt: str


class InterpretRequest(BaseModel):
    text: str


class SimulationRequest(BaseModel):
    user_id: str
    prompt: Optional[str] = None


class BackendResult(BaseModel):
    backend: str
    display_name: str
    result: SimulationResultSchema
    from_fallback: bool = False
    matches_ground_truth: Optional[bool] = None


class SimulationResponse(BaseModel):
    user_id: str
    results: List[BackendResult]
