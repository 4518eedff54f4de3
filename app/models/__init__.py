from app.models.principal import Principal, PrincipalType
