# API contracts (Pydantic), kept separate from the ORM models
