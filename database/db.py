from peewee import Proxy

# Удалённая база (Supabase/PostgreSQL). Инициализируется в database.init.
db = Proxy()
