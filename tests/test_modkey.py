from tracemap.mapping import ModuleKey, module_key, name_similarity, names_block


def test_module_key_from_region_name():
    key = module_key("Memory[/bin/echo 0x55550000]")
    assert key == ModuleKey("/bin/echo", 0x55550000)
    assert key.basename == "echo"

    key = module_key("/lib/libc.so 7f000000")
    assert key == ModuleKey("/lib/libc.so", 0x7F000000)
    assert key.basename == "libc.so"


def test_module_key_windows_path():
    key = module_key(r"C:\Windows\System32\ntdll.dll 0x7ffe0000")
    assert key.basename == "ntdll.dll"
    assert key.base == 0x7FFE0000


def test_module_key_absent():
    assert module_key("Memory[bin:.text]") is None
    assert module_key("[heap]") is None
    assert module_key("") is None
    assert module_key("/bin/echo 0xZZ") is None


def test_name_similarity():
    assert name_similarity("echo", "echo") == 1.0
    assert name_similarity("ECHO", "echo") == 1.0
    assert name_similarity("libc.so.6", "libc.so") == 0.75
    assert name_similarity("echo", "cat") == 0.0
    assert name_similarity("", "echo") == 0.0


def test_names_block():
    assert names_block("Memory[bin:.text]", ".text")
    assert not names_block("Memory[bin:.text2]", ".text")
    assert not names_block("Memory[/bin/echo 0x55550000]", "e")
