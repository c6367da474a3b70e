import os
import sys
import subprocess
from dotenv import load_dotenv

print('Starting QuickAi...')
load_dotenv()
# Any arguments are forwarded as the initial query
subprocess.run([sys.executable, os.path.join('src', 'main.py'), *sys.argv[1:]])
