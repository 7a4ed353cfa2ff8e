"""VM template provisioning workflow for pve-cloud-template."""

from __future__ import annotations

from typing import Optional

from pvetemplate.cloudinit import archive_home_dir, build_runcmds, render_cloud_init
from pvetemplate.config import check_ssh_key, resolve_size_profile
from pvetemplate.constants import SNIPPET_NAME_TEMPLATE
from pvetemplate.images import ensure_distro_image
from pvetemplate.models import DistroProfile, HostConfig, ProvisionRequest, SizeProfile
from pvetemplate.qm import QmClient
from pvetemplate.utils import ensure_directory, hash_password, log


class TemplateProvisioner:
    """Create a cloud-init enabled VM and convert it into a template.

    Steps run strictly in order. A failure stops the sequence and leaves any
    VM or disk created so far in place for manual cleanup.
    """

    def __init__(
        self,
        request: ProvisionRequest,
        distro: DistroProfile,
        host: HostConfig,
        qm: Optional[QmClient] = None,
    ) -> None:
        self.request = request
        self.distro = distro
        self.host = host
        self.qm = qm or QmClient()
        self.image = distro.image(host.image_dir)
        self.snippet_name = SNIPPET_NAME_TEMPLATE.format(image_id=request.image_id)
        self.snippet_path = host.snippets_dir / self.snippet_name

    def provision(self) -> int:
        req = self.request
        profile = resolve_size_profile(req.size)
        image_path = ensure_distro_image(self.image)

        log("INFO", f"Creating {req.size} VM with ID {req.image_id}...")
        self._create_vm(profile)
        volume = self.qm.import_disk(req.image_id, image_path, self.host.storage)
        self._configure_hardware(volume, profile)

        check_ssh_key(req.ssh_key_path)
        self._configure_cloud_init()
        self._write_cloud_init()
        self.qm.set_options(
            req.image_id,
            {"cicustom": f"user={self.host.snippets_storage}:snippets/{self.snippet_name}"},
        )

        self.qm.convert_to_template(req.image_id)
        if req.with_home:
            log("SUCCESS", "VM template created successfully with populated home directory.")
        else:
            log("SUCCESS", "VM template created successfully.")
        return req.image_id

    def _create_vm(self, profile: SizeProfile) -> None:
        self.qm.create_vm(
            self.request.image_id,
            name=self.distro.vm_name(self.request.size),
            memory_mb=profile.memory_mb,
            cores=profile.cores,
            bridge=self.host.bridge,
        )

    def _configure_hardware(self, volume: str, profile: SizeProfile) -> None:
        vmid = self.request.image_id
        self.qm.set_options(vmid, {"scsihw": "virtio-scsi-pci", "scsi0": volume})
        self.qm.set_options(vmid, {"ide2": f"{self.host.storage}:cloudinit"})
        self.qm.set_options(vmid, {"boot": "c", "bootdisk": "scsi0"})
        self.qm.set_options(vmid, {"serial0": "socket", "vga": "serial0"})
        self.qm.resize_disk(vmid, "scsi0", profile.disk_size)
        self.qm.set_options(vmid, {"agent": "enabled=1"})

    def _configure_cloud_init(self) -> None:
        vmid = self.request.image_id
        self.qm.set_options(vmid, {"ciuser": self.request.username})
        self.qm.set_options(vmid, {"sshkeys": str(self.request.ssh_key_path)})
        self.qm.set_options(vmid, {"ipconfig0": "ip=dhcp"})

    def render_document(self) -> str:
        req = self.request
        packages = list(self.distro.packages)
        home_payload = None
        if req.home_dir_path is not None:
            packages.extend(pkg for pkg in self.distro.home_packages if pkg not in packages)
            home_payload = archive_home_dir(req.home_dir_path)
        password_hash = hash_password(req.password) if req.password else None
        return render_cloud_init(
            req.username,
            check_ssh_key(req.ssh_key_path),
            packages,
            build_runcmds(self.distro, self.host.timezone),
            home_tarball_b64=home_payload,
            timezone=self.host.timezone,
            password_hash=password_hash,
        )

    def _write_cloud_init(self) -> None:
        ensure_directory(self.host.snippets_dir)
        self.snippet_path.write_text(self.render_document(), encoding="utf-8")
        log("INFO", f"Cloud-init user data written to {self.snippet_path}")
