from supabase import Client, create_client

from src.config import settings

supabase: Client = create_client(settings.supabase_url, settings.supabase_service_role_key)
