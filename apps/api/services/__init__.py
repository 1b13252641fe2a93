
# Services package
from .supabase import SupabaseService, get_supabase_service
from .scraper import ScrapeService
