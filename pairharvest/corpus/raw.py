# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Raw metadata shapes, exactly as they are published on disk.

There are two of them:

  - Individual: a flat list where every entry describes a whole pair.
  - Project: one shared `project_information` block plus lightweight entries
    that only carry a name, a description and per-language source paths.

They are modelled as one discriminated union. The discriminator looks at the
structure: a document with `project_information` is a Project, anything else
is an Individual. Both models forbid unknown keys, so a document can never
satisfy both.
"""

from enum import Enum
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag, TypeAdapter


class FeatureRelationship(str, Enum):
    """The feature_relationship literals used in metadata files."""

    RUST_SUBSET_OF_C = "rust_subset_of_c"
    RUST_EQUIVALENT_TO_C = "rust_equivalent_to_c"
    RUST_SUPERSET_OF_C = "rust_superset_of_c"
    OVERLAPPING = "overlapping"


class _RawModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class IndividualProgram(_RawModel):
    documentation_url: str
    repository_url: str
    source_paths: list[str]


class IndividualProgramPair(_RawModel):
    program_name: str
    program_description: str
    translation_tools: list[str]
    feature_relationship: FeatureRelationship
    c_program: IndividualProgram
    rust_program: IndividualProgram


class IndividualMetadata(_RawModel):
    pairs: list[IndividualProgramPair]


class ProjectGlobalProgram(_RawModel):
    documentation_url: str
    repository_url: str


class ProjectInformation(_RawModel):
    program_name: str
    translation_tools: list[str]
    feature_relationship: FeatureRelationship
    c_program: ProjectGlobalProgram
    rust_program: ProjectGlobalProgram


class ProjectProgram(_RawModel):
    source_paths: list[str]


class ProjectProgramPair(_RawModel):
    program_name: str
    program_description: str
    c_program: ProjectProgram
    rust_program: ProjectProgram


class ProjectMetadata(_RawModel):
    project_information: ProjectInformation
    pairs: list[ProjectProgramPair]


def _shape_of(document: Any) -> str:
    if isinstance(document, dict):
        return "project" if "project_information" in document else "individual"
    return "project" if isinstance(document, ProjectMetadata) else "individual"


RawMetadata = Annotated[
    Union[
        Annotated[IndividualMetadata, Tag("individual")],
        Annotated[ProjectMetadata, Tag("project")],
    ],
    Discriminator(_shape_of),
]

RAW_METADATA_ADAPTER = TypeAdapter(RawMetadata)
