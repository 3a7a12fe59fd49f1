import os
import argparse
import asyncio
import subprocess
import sys
import logging
from pathlib import Path
from dotenv import load_dotenv

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger("solution360")

# Load environment variables
load_dotenv()

def setup_environment():
    """Create a minimal .env file if none exists"""
    env_path = Path(".env")

    if env_path.exists():
        logger.info(".env file already exists")
        return

    example_path = Path(".env.example")
    if example_path.exists():
        logger.info("Creating .env file from .env.example...")
        with open(example_path, "r") as example, open(env_path, "w") as env:
            env.write(example.read())
        logger.info("Created .env file. Please update it with your actual values.")
    else:
        logger.info("Creating basic .env file...")
        with open(env_path, "w") as env:
            env.write("JWT_SECRET=change-me\n")
            env.write("ALGORITHM=HS256\n")
            env.write("DATABASE_URL=sqlite:///./app.db\n")
            env.write("EMAIL_TRANSPORT=smtp\n")
        logger.info("Created basic .env file. Please update it with your actual values.")

def setup_database():
    """Create database tables"""
    logger.info("Setting up database...")

    try:
        from app.db.base import Base, engine
        import app.models  # noqa: F401

        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully!")
        return True
    except Exception as e:
        logger.error(f"Error setting up database: {str(e)}")
        logger.debug("This error may be normal if the database is already set up.", exc_info=True)
        return False

def provision_company(name, allowed_ips, group=None):
    """Create a company record with its IP allow-list"""
    from app.db.base import SessionLocal
    from app.services.company import create_company

    db = SessionLocal()
    try:
        company = asyncio.run(create_company(db, name, allowed_ips, group))
        logger.info(f"Created company '{company.name}' with allowed IPs: {company.allowed_ips or 'any'}")
        return True
    except ValueError as e:
        logger.error(f"Could not create company: {e}")
        return False
    finally:
        db.close()

def start_server(port=8000, reload=True):
    """Start the FastAPI server using uvicorn"""
    port = int(os.environ.get("PORT", port))
    logger.info(f"Starting server on port {port}...")

    args = ["uvicorn", "main:app", "--host", "0.0.0.0", "--port", str(port)]

    if reload:
        args.append("--reload")

    try:
        subprocess.run(args)
    except KeyboardInterrupt:
        logger.info("\nServer stopped")
        sys.exit(0)

def main():
    """Parse command-line arguments and run the application"""
    parser = argparse.ArgumentParser(description="Solution 360 Auth Backend Starter")
    parser.add_argument("--port", type=int, default=8000, help="Port to run the server on")
    parser.add_argument("--no-reload", action="store_true", help="Disable auto-reload on code changes")
    parser.add_argument("--skip-setup", action="store_true", help="Skip setting up database")
    parser.add_argument("--setup-only", action="store_true", help="Only set up environment and database")
    parser.add_argument("--create-company", metavar="NAME", help="Create a company record and exit")
    parser.add_argument("--allowed-ip", action="append", default=[], help="Allowed IP for --create-company (up to 3)")
    parser.add_argument("--group", help="Group for --create-company")

    args = parser.parse_args()

    logger.info("Solution 360 Auth Backend Starter")
    logger.info("---------------------------------")

    # Set up environment and database
    setup_environment()

    if not args.skip_setup:
        setup_database()

    if args.create_company:
        ok = provision_company(args.create_company, args.allowed_ip, args.group)
        sys.exit(0 if ok else 1)

    if args.setup_only:
        logger.info("Setup complete. Exiting.")
        return

    # Start the server
    start_server(port=args.port, reload=not args.no_reload)

if __name__ == "__main__":
    main()
