from sqlmodel import create_engine, Session
from geniepay.core.config import settings

# SQLite (tests) : la session est partagée entre les threads du serveur de test
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

# Création du moteur de connexion
# SQL_ECHO=True permet de voir les requêtes SQL dans le terminal (utile pour le debug)
engine = create_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO, connect_args=connect_args)

def get_db():
    """
    Fonction de dépendance (Dependency Injection).
    Crée une session DB pour une requête, et la ferme après.
    """
    with Session(engine) as session:
        yield session
